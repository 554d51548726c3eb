from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from ingestion.cache import CacheEntry, SnapshotStore
from ingestion.client import ProviderHttpClient
from ingestion.kalshi import KalshiProvider
from ingestion.polymarket import PolymarketProvider
from ingestion.registry import available_providers, get_provider
from marketpulse.domain import FilterConfig
from marketpulse.errors import ConfigurationError, UpstreamError, UpstreamTimeoutError, ValidationError

GAMMA = "https://gamma.test"
CLOB = "https://clob.test"
KALSHI = "https://kalshi.test/trade-api/v2"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class Recorder:
    """MockTransport handler that records requests and replays canned responses."""

    def __init__(self, routes):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get(request.url.path)
        if handler is None:
            return httpx.Response(404, json={"error": "not found"})
        result = handler(request) if callable(handler) else handler
        if isinstance(result, httpx.Response):
            return result
        return httpx.Response(200, json=result)

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]


def _polymarket(settings, recorder: Recorder, *, clock=None, snapshot=None) -> PolymarketProvider:
    transport = httpx.MockTransport(recorder)
    kwargs = {"snapshot": snapshot}
    if clock is not None:
        kwargs["clock"] = clock
    return PolymarketProvider(
        settings,
        ProviderHttpClient(provider="polymarket", base_url=GAMMA, transport=transport),
        clob_http=ProviderHttpClient(provider="polymarket-clob", base_url=CLOB, transport=transport),
        **kwargs,
    )


def _kalshi(settings, recorder: Recorder, *, now=None, clock=None) -> KalshiProvider:
    transport = httpx.MockTransport(recorder)
    return KalshiProvider(
        settings,
        ProviderHttpClient(provider="kalshi", base_url=KALSHI, transport=transport),
        now=now or FakeClock(),
        **({"clock": clock} if clock is not None else {}),
    )


@pytest.mark.asyncio
async def test_polymarket_fetch_markets_caches_within_ttl(test_settings, polymarket_event_payload, tmp_path):
    clock = FakeClock()
    recorder = Recorder({"/events": [polymarket_event_payload]})
    snapshot = SnapshotStore(tmp_path / "markets.json")
    provider = _polymarket(test_settings, recorder, clock=clock, snapshot=snapshot)

    markets = await provider.fetch_markets(FilterConfig())
    again = await provider.fetch_markets(FilterConfig())

    assert [market.slug for market in markets] == [
        "chiefs-super-bowl-2025",
        "lions-super-bowl-2025",
        "team-k-super-bowl-2025",
    ]
    assert again == markets
    assert recorder.paths() == ["/events"]
    params = recorder.requests[0].url.params
    assert params["active"] == "true"
    assert params["closed"] == "false"
    assert params["limit"] == "2"
    assert params["offset"] == "0"
    assert snapshot.load() is not None

    clock.now += test_settings.market_cache_ttl_seconds + 1
    await provider.fetch_markets(FilterConfig())
    assert recorder.paths() == ["/events", "/events"]
    await provider.aclose()


@pytest.mark.asyncio
async def test_polymarket_pre_filters_events_by_title(test_settings, polymarket_event_payload):
    other_event = {"id": "1", "title": "Oscars Best Picture", "markets": [{"id": "9", "question": "Dune?"}]}
    recorder = Recorder({"/events": [polymarket_event_payload, other_event]})
    # A short page so the listing stops after one request.
    settings = test_settings.model_copy(update={"ingestion_page_size": 10})
    provider = _polymarket(settings, recorder)

    markets = await provider.fetch_markets(FilterConfig(event_filters=("super bowl",)))

    assert {market.event.id for market in markets} == {"9001"}
    assert len(recorder.requests) == 1
    await provider.aclose()


@pytest.mark.asyncio
async def test_polymarket_paginates_until_short_page(test_settings, polymarket_event_payload):
    def events(request: httpx.Request):
        offset = int(request.url.params["offset"])
        if offset == 0:
            return [polymarket_event_payload, {"id": "2", "title": "Empty", "markets": []}]
        return [{"id": "3", "title": "Also empty", "markets": []}]

    recorder = Recorder({"/events": events})
    provider = _polymarket(test_settings, recorder)

    await provider.fetch_all_markets()

    assert [request.url.params["offset"] for request in recorder.requests] == ["0", "2"]
    await provider.aclose()


@pytest.mark.asyncio
async def test_polymarket_serves_stale_markets_when_upstream_fails(test_settings, polymarket_event_payload):
    clock = FakeClock()
    responses = [[polymarket_event_payload], httpx.Response(502, text="bad gateway")]
    recorder = Recorder({"/events": lambda request: responses.pop(0)})
    provider = _polymarket(test_settings, recorder, clock=clock)

    first = await provider.fetch_markets(FilterConfig())
    clock.now += test_settings.market_cache_ttl_seconds + 1
    second = await provider.fetch_markets(FilterConfig())

    assert second == first
    assert len(recorder.requests) == 2
    await provider.aclose()


@pytest.mark.asyncio
async def test_error_object_in_ok_reply_keeps_stale_markets_and_snapshot(
    test_settings, polymarket_event_payload, tmp_path
):
    clock = FakeClock()
    snapshot = SnapshotStore(tmp_path / "markets.json")
    responses = [[polymarket_event_payload], {"error": "rate limited"}]
    recorder = Recorder({"/events": lambda request: responses.pop(0)})
    provider = _polymarket(test_settings, recorder, clock=clock, snapshot=snapshot)

    first = await provider.fetch_markets(FilterConfig())
    clock.now += 10 * 60 * 60
    second = await provider.fetch_markets(FilterConfig())

    assert len(first) == 3
    assert second == first
    assert len(snapshot.load().data) == 3
    await provider.aclose()


@pytest.mark.asyncio
async def test_error_object_on_cold_cache_raises(test_settings):
    provider = _polymarket(test_settings, Recorder({"/events": {"error": "rate limited"}}))

    with pytest.raises(UpstreamError):
        await provider.fetch_all_markets()
    await provider.aclose()


@pytest.mark.asyncio
async def test_malformed_price_history_degrades_to_empty(test_settings):
    recorder = Recorder({"/prices-history": [{"t": 1, "p": 0.4}]})
    provider = _polymarket(test_settings, recorder)

    assert await provider.fetch_price_history("tok-1", "1w") == []
    await provider.aclose()

    error_body = _polymarket(test_settings, Recorder({"/prices-history": {"error": "bad market"}}))
    assert await error_body.fetch_price_history("tok-1", "1d") == []
    await error_body.aclose()


@pytest.mark.asyncio
async def test_kalshi_error_object_keeps_stale_markets(test_settings, kalshi_event_payload):
    clock = FakeClock()
    responses = [{"events": [kalshi_event_payload], "cursor": ""}, {"error": {"code": "rate_limited"}}]
    recorder = Recorder({"/trade-api/v2/events": lambda request: responses.pop(0)})
    provider = _kalshi(test_settings, recorder, clock=clock)

    first = await provider.fetch_markets(FilterConfig())
    clock.now += test_settings.market_cache_ttl_seconds + 1
    second = await provider.fetch_markets(FilterConfig())

    assert [market.id for market in second] == [market.id for market in first] == ["KXMVP-25-JALLEN"]
    await provider.aclose()


@pytest.mark.asyncio
async def test_http_client_rejects_unexpected_body_shape():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"error": "nope"}))
    async with ProviderHttpClient(provider="polymarket", base_url=GAMMA, transport=transport) as client:
        assert await client.get_json("/events") == {"error": "nope"}
        with pytest.raises(UpstreamError) as excinfo:
            await client.get_json("/events", expect=list)
    assert "unexpected dict body" in excinfo.value.message


@pytest.mark.asyncio
async def test_polymarket_cold_timeout_raises(test_settings):
    def timeout(request: httpx.Request):
        raise httpx.ReadTimeout("timed out", request=request)

    provider = _polymarket(test_settings, Recorder({"/events": timeout}))

    with pytest.raises(UpstreamTimeoutError):
        await provider.fetch_markets(FilterConfig())
    await provider.aclose()


@pytest.mark.asyncio
async def test_polymarket_seeds_markets_from_snapshot(test_settings, market_factory, tmp_path):
    clock = FakeClock()
    snapshot = SnapshotStore(tmp_path / "markets.json")
    snapshot.save(CacheEntry(data=[market_factory("seeded")], timestamp=clock.now - 5))
    recorder = Recorder({})
    provider = _polymarket(test_settings, recorder, clock=clock, snapshot=snapshot)

    markets = await provider.fetch_markets(FilterConfig())

    assert [market.slug for market in markets] == ["seeded"]
    assert recorder.requests == []
    await provider.aclose()


@pytest.mark.asyncio
async def test_polymarket_skips_malformed_markets(test_settings, polymarket_event_payload):
    polymarket_event_payload["markets"].append({"question": "Missing id", "slug": "broken"})
    provider = _polymarket(test_settings, Recorder({"/events": [polymarket_event_payload]}))

    markets = await provider.fetch_markets(FilterConfig())

    assert len(markets) == 3
    assert [diagnostic.market_ref for diagnostic in provider.diagnostics] == ["broken"]
    await provider.aclose()


@pytest.mark.asyncio
async def test_polymarket_price_history(test_settings):
    recorder = Recorder({"/prices-history": {"history": [{"t": 1, "p": 0.4}, {"t": 2, "p": "0.5"}, {"p": 1}]}})
    provider = _polymarket(test_settings, recorder)

    history = await provider.fetch_price_history("tok-1", "1w")
    cached = await provider.fetch_price_history("tok-1", "1w")

    assert [(point.t, point.p) for point in history] == [(1, 0.4), (2, 0.5)]
    assert cached == history
    assert len(recorder.requests) == 1
    params = recorder.requests[0].url.params
    assert params["market"] == "tok-1"
    assert params["interval"] == "max"
    assert params["fidelity"] == "360"
    await provider.aclose()


@pytest.mark.asyncio
async def test_price_history_rejects_unknown_interval_and_degrades_on_failure(test_settings):
    provider = _polymarket(test_settings, Recorder({"/prices-history": httpx.Response(500)}))

    with pytest.raises(ValidationError):
        await provider.fetch_price_history("tok-1", "1y")
    assert await provider.fetch_price_history("tok-1", "1d") == []
    await provider.aclose()


@pytest.mark.asyncio
async def test_polymarket_check_resolution(test_settings, market_factory):
    recorder = Recorder(
        {"/events": [{"closed": True, "resolution": "Yes", "resolvedAt": "2025-02-10T00:00:00Z"}]}
    )
    provider = _polymarket(test_settings, recorder)

    status = await provider.check_resolution(market_factory("chiefs"))

    assert status.resolved is True
    assert status.outcome == "Yes"
    assert status.resolved_at is not None
    assert recorder.requests[0].url.params["slug"] == "chiefs"
    await provider.aclose()


@pytest.mark.asyncio
async def test_check_resolution_falls_back_to_cached_flag(test_settings, market_factory):
    provider = _polymarket(test_settings, Recorder({"/events": httpx.Response(503)}))

    status = await provider.check_resolution(market_factory("chiefs", resolved=True))

    assert status.resolved is True
    assert status.outcome is None
    await provider.aclose()


@pytest.mark.asyncio
async def test_kalshi_follows_cursor_pagination(test_settings, kalshi_event_payload):
    def events(request: httpx.Request):
        if request.url.params.get("cursor") == "page-2":
            return {"events": [], "cursor": ""}
        return {"events": [kalshi_event_payload], "cursor": "page-2"}

    recorder = Recorder({"/trade-api/v2/events": events})
    provider = _kalshi(test_settings, recorder)

    markets = await provider.fetch_markets(FilterConfig())

    assert [market.id for market in markets] == ["KXMVP-25-JALLEN"]
    assert len(recorder.requests) == 2
    first = recorder.requests[0].url.params
    assert first["status"] == "open"
    assert first["with_nested_markets"] == "true"
    assert "cursor" not in first
    await provider.aclose()


@pytest.mark.asyncio
async def test_kalshi_price_history_requires_series(test_settings):
    recorder = Recorder({})
    provider = _kalshi(test_settings, recorder)

    assert await provider.fetch_price_history("UNKNOWN-TICKER", "1w") == []
    assert recorder.requests == []
    await provider.aclose()


@pytest.mark.asyncio
async def test_kalshi_price_history_looks_up_series_from_cache(test_settings, kalshi_event_payload):
    clock = FakeClock()
    candles = {
        "candlesticks": [
            {"end_period_ts": 100, "price": {"close_dollars": "0.5500"}},
            {"end_period_ts": 200, "price": {"close": 57}},
            {"end_period_ts": 300, "price": {}},
        ]
    }
    recorder = Recorder(
        {
            "/trade-api/v2/events": {"events": [kalshi_event_payload], "cursor": None},
            "/trade-api/v2/series/KXMVP/markets/KXMVP-25-JALLEN/candlesticks": candles,
        }
    )
    provider = _kalshi(test_settings, recorder, now=clock)
    await provider.fetch_markets(FilterConfig())

    history = await provider.fetch_price_history("KXMVP-25-JALLEN", "1w")

    assert [(point.t, point.p) for point in history] == [(100, 0.55), (200, 0.57)]
    params = recorder.requests[-1].url.params
    assert params["period_interval"] == "60"
    assert int(params["end_ts"]) - int(params["start_ts"]) == 7 * 24 * 60 * 60
    await provider.aclose()


@pytest.mark.asyncio
async def test_kalshi_check_resolution(test_settings, kalshi_market_payload, kalshi_event_payload):
    from ingestion.normalize import normalize_kalshi_market

    market = normalize_kalshi_market(kalshi_market_payload, kalshi_event_payload)
    settled = {**kalshi_market_payload, "status": "finalized", "result": "yes"}
    recorder = Recorder({"/trade-api/v2/events/KXMVP-25": {"event": {"markets": [settled]}}})
    provider = _kalshi(test_settings, recorder)

    status = await provider.check_resolution(market)

    assert status.resolved is True
    assert status.outcome == "yes"
    assert provider.get_market_url(market) == "https://kalshi.com/markets/KXMVP-25"
    await provider.aclose()


@pytest.mark.asyncio
async def test_http_client_maps_status_errors(test_settings):
    transport = httpx.MockTransport(lambda request: httpx.Response(429, json={}))
    async with ProviderHttpClient(provider="kalshi", base_url=KALSHI, transport=transport) as client:
        with pytest.raises(UpstreamError) as excinfo:
            await client.get_json("/events")
    assert "429" in excinfo.value.message
    assert excinfo.value.provider == "kalshi"


@pytest.mark.asyncio
async def test_registry_builds_configured_provider(test_settings):
    provider = get_provider(test_settings, transport=httpx.MockTransport(Recorder({})))
    assert isinstance(provider, PolymarketProvider)
    assert provider._snapshot is not None
    assert provider._snapshot.path == Path(test_settings.cache_dir) / "markets.json"
    await provider.aclose()

    assert available_providers() == ["kalshi", "polymarket"]
    with pytest.raises(ConfigurationError):
        get_provider(test_settings.model_copy(update={"provider": "manifold"}))
