from __future__ import annotations

import random
from unittest.mock import AsyncMock, MagicMock

import pytest

from marketpulse.domain import FilterConfig, PricePoint, ResolutionStatus
from marketpulse.errors import NotFoundError, UpstreamError, ValidationError
from marketpulse.services.market_service import MarketService
from marketpulse.services.scheduler import RefreshJob, RefreshScheduler
from marketpulse.services.vote_service import VoteService


@pytest.fixture
def provider(market_factory):
    fake = MagicMock()
    fake.id = "polymarket"
    fake.last_updated.return_value = None
    fake.cached_markets.return_value = []
    fake.fetch_markets = AsyncMock(
        return_value=[
            market_factory("small", volume=10, change24h=0.05),
            market_factory("large", volume=1_000, series_ticker="KXLARGE"),
        ]
    )
    fake.fetch_all_markets = AsyncMock(return_value=[])
    fake.fetch_price_history = AsyncMock(return_value=[PricePoint(t=1, p=0.5)])
    fake.check_resolution = AsyncMock(return_value=ResolutionStatus(resolved=True, outcome="Yes"))
    return fake


@pytest.fixture
def service(provider) -> MarketService:
    return MarketService(
        provider,
        FilterConfig(category="sports"),
        VoteService(None, deployment_id="d", provider="polymarket"),
        rng=random.Random(0),
    )


@pytest.mark.asyncio
async def test_list_markets_sorts_by_volume_and_attaches_sparklines(service, provider):
    result = await service.list_markets(sparklines=True)

    assert [market.slug for market in result.markets] == ["large", "small"]
    assert result.markets[0].outcomes[0].sparkline == (PricePoint(t=1, p=0.5),)
    assert result.markets[0].outcomes[1].sparkline is None
    provider.fetch_price_history.assert_any_await("large-0", "1w", series_ticker="KXLARGE")
    assert result.last_updated is not None


@pytest.mark.asyncio
async def test_editorial_without_votes(service):
    result = await service.editorial()

    assert result.votes_included is False
    assert [entry.market.slug for entry in result.themes["bigMovers"]] == ["small"]


@pytest.mark.asyncio
async def test_price_history_validates_arguments(service):
    with pytest.raises(ValidationError):
        await service.price_history(None, "1w")
    with pytest.raises(ValidationError):
        await service.price_history("tok", "1y")
    assert await service.price_history("tok", "1m") == [PricePoint(t=1, p=0.5)]


@pytest.mark.asyncio
async def test_resolution_looks_up_known_markets(service, provider):
    status = await service.resolution("large")
    assert status.resolved is True

    with pytest.raises(NotFoundError):
        await service.resolution("missing")


def test_scheduler_jobs_follow_settings(test_settings, service):
    scheduler = RefreshScheduler.for_markets(test_settings, service)

    assert [job.name for job in scheduler.jobs] == ["markets", "all_markets"]
    assert scheduler.jobs[0].seconds == test_settings.data_refresh_interval
    assert scheduler.running is False


@pytest.mark.asyncio
async def test_scheduler_registers_and_stops():
    scheduler = RefreshScheduler([RefreshJob("markets", 60, AsyncMock(return_value=3))])

    scheduler.start()
    try:
        assert scheduler.running is True
        assert [job.id for job in scheduler.scheduler.get_jobs()] == ["markets"]
    finally:
        scheduler.stop()
    assert scheduler.running is False


@pytest.mark.asyncio
async def test_refresh_job_failures_are_contained():
    failing = RefreshJob("markets", 60, AsyncMock(side_effect=UpstreamError("down")))
    crashing = RefreshJob("all_markets", 60, AsyncMock(side_effect=RuntimeError("boom")))

    await RefreshScheduler._run(failing)
    await RefreshScheduler._run(crashing)

    failing.handler.assert_awaited_once()
    crashing.handler.assert_awaited_once()
