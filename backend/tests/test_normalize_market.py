from __future__ import annotations

from datetime import datetime, timezone

import pytest

from ingestion.normalize import (
    DEFAULT_PRICE,
    clamp_price,
    generate_slug,
    normalize_kalshi_market,
    normalize_polymarket_market,
    parse_kalshi_price,
    resolve_price,
)
from marketpulse.errors import NormalizationError


def test_normalize_polymarket_grouped_market(polymarket_event_payload):
    raw = polymarket_event_payload["markets"][0]
    market = normalize_polymarket_market(raw, polymarket_event_payload)

    assert market.id == "501"
    assert market.slug == "chiefs-super-bowl-2025"
    assert len(market.outcomes) == 1
    outcome = market.outcomes[0]
    assert outcome.name == "Kansas City Chiefs"
    assert outcome.price == pytest.approx(0.42)
    assert outcome.change24h == pytest.approx(0.03)
    assert outcome.change7d == pytest.approx(-0.01)
    assert outcome.token_id == "tok-chiefs-yes"
    assert market.volume == pytest.approx(250000.5)
    assert market.volume24h == pytest.approx(12000)
    assert market.liquidity == pytest.approx(40000)
    assert market.event.id == "9001"
    assert market.event.title == "Super Bowl Champion 2025"
    assert market.created_at == datetime(2024, 9, 1, 12, 0, tzinfo=timezone.utc)
    assert market.resolves_at == datetime(2025, 2, 9, 23, 0, tzinfo=timezone.utc)
    assert market.provider_url == "https://polymarket.com/event/chiefs-super-bowl-2025"
    assert market.resolved is False


def test_normalize_polymarket_binary_market_without_event():
    raw = {
        "id": 77,
        "question": "Will it snow in Miami?",
        "outcomes": ["Yes", "No"],
        "bestBid": "0.10",
        "bestAsk": "0.20",
        "volume": "-5",
    }
    market = normalize_polymarket_market(raw)

    assert market.id == "77"
    assert market.slug == "will-it-snow-in-miami"
    assert [outcome.name for outcome in market.outcomes] == ["Yes", "No"]
    assert market.outcomes[0].price == pytest.approx(0.15)
    assert market.outcomes[1].price == pytest.approx(0.85)
    assert market.volume == 0.0
    assert market.event.id == "77"
    assert market.event.category == "unknown"


def test_normalize_polymarket_requires_id():
    with pytest.raises(NormalizationError):
        normalize_polymarket_market({"question": "No id here"})


def test_normalize_kalshi_market(kalshi_market_payload, kalshi_event_payload):
    market = normalize_kalshi_market(kalshi_market_payload, kalshi_event_payload)

    assert market.id == "KXMVP-25-JALLEN"
    assert market.slug == "KXMVP-25-JALLEN"
    assert market.outcomes[0].name == "Josh Allen"
    assert market.outcomes[0].price == pytest.approx(0.55)
    assert market.outcomes[0].change24h == pytest.approx(0.05)
    assert market.outcomes[0].token_id == "KXMVP-25-JALLEN"
    assert market.volume == pytest.approx(1500)
    assert market.volume24h == pytest.approx(300)
    assert market.liquidity == pytest.approx(800)
    assert market.event.id == "KXMVP-25"
    assert market.event.title == "NFL MVP 2025"
    assert market.series_ticker == "KXMVP"
    assert market.provider_url == "https://kalshi.com/markets/KXMVP-25"
    assert market.resolved is False


def test_normalize_kalshi_settled_market_uses_last_price(kalshi_market_payload):
    raw = dict(kalshi_market_payload)
    for key in ("yes_bid_dollars", "yes_ask_dollars", "previous_price_dollars"):
        raw.pop(key)
    raw.update(status="settled", result="yes")

    market = normalize_kalshi_market(raw)

    assert market.outcomes[0].price == pytest.approx(0.53)
    assert market.outcomes[0].change24h == 0.0
    assert market.resolved is True
    assert market.resolution == "yes"


def test_normalize_kalshi_requires_ticker():
    with pytest.raises(NormalizationError):
        normalize_kalshi_market({"title": "orphan"})


@pytest.mark.parametrize(
    ("value", "expected"),
    [("0.5600", 0.56), (56, 0.56), (0.56, 0.56), (56.0, 0.56), (None, None), ("", None), ("abc", None)],
)
def test_parse_kalshi_price(value, expected):
    result = parse_kalshi_price(value)
    if expected is None:
        assert result is None
    else:
        assert result == pytest.approx(expected)


def test_resolve_price_fallbacks():
    assert resolve_price(0.4, 0.6, 0.9) == pytest.approx(0.5)
    assert resolve_price(None, 0.6, 0.3) == pytest.approx(0.3)
    assert resolve_price(None, None, None) == DEFAULT_PRICE
    assert clamp_price(float("nan")) == DEFAULT_PRICE
    assert clamp_price(1.4) == 1.0


def test_generate_slug():
    assert generate_slug("Will the Chiefs win?!") == "will-the-chiefs-win"
