"""Async facade over the configured provider used by the API and the scheduler."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Sequence

from loguru import logger

from ingestion.base import MarketProvider
from ingestion.filters import group_markets_by_event, sort_markets
from marketpulse.domain import (
    PRICE_INTERVALS,
    Event,
    FilterConfig,
    NormalizedMarket,
    PricePoint,
    ResolutionStatus,
)
from marketpulse.editorial import DEFAULT_POLICY, EditorialPolicy, EditorialThemes, calculate_editorial
from marketpulse.errors import NotFoundError, ValidationError

from .vote_service import VoteService

SPARKLINE_INTERVAL = "1w"


@dataclass(slots=True)
class MarketQueryResult:
    markets: Sequence[NormalizedMarket]
    last_updated: datetime


@dataclass(slots=True)
class EventQueryResult:
    events: Sequence[Event]
    all_markets: bool
    last_updated: datetime


@dataclass(slots=True)
class EditorialResult:
    themes: EditorialThemes
    votes_included: bool
    last_updated: datetime


class MarketService:
    """Read-only facade over provider listings, grouping and editorial ranking."""

    def __init__(
        self,
        provider: MarketProvider,
        filters: FilterConfig,
        votes: VoteService,
        *,
        policy: EditorialPolicy = DEFAULT_POLICY,
        rng: random.Random | None = None,
        sparkline_concurrency: int = 8,
    ) -> None:
        self.provider = provider
        self.filters = filters
        self.votes = votes
        self.policy = policy
        self._rng = rng or random.Random()
        self._sparkline_concurrency = sparkline_concurrency

    def _last_updated(self) -> datetime:
        return self.provider.last_updated() or datetime.now(timezone.utc)

    async def list_markets(self, *, sparklines: bool = False) -> MarketQueryResult:
        markets = sort_markets(await self.provider.fetch_markets(self.filters), "volume")
        if sparklines:
            markets = await self.attach_sparklines(markets)
        return MarketQueryResult(markets=markets, last_updated=self._last_updated())

    async def list_events(self, *, all_markets: bool = False) -> EventQueryResult:
        if all_markets:
            markets = await self.provider.fetch_all_markets()
        else:
            markets = await self.provider.fetch_markets(self.filters)
        return EventQueryResult(
            events=group_markets_by_event(markets),
            all_markets=all_markets,
            last_updated=self._last_updated(),
        )

    async def editorial(self) -> EditorialResult:
        markets = await self.provider.fetch_markets(self.filters)
        summary = await asyncio.to_thread(self.votes.all_results)
        themes = calculate_editorial(markets, summary.results, policy=self.policy, rng=self._rng)
        return EditorialResult(
            themes=themes,
            votes_included=bool(summary.results),
            last_updated=self._last_updated(),
        )

    async def price_history(
        self,
        token_id: str | None,
        interval: str | None,
        *,
        series_ticker: str | None = None,
    ) -> list[PricePoint]:
        if not token_id:
            raise ValidationError("tokenId is required")
        if interval not in PRICE_INTERVALS:
            raise ValidationError(f"interval must be one of {', '.join(PRICE_INTERVALS)}")
        return await self.provider.fetch_price_history(token_id, interval, series_ticker=series_ticker)

    async def resolution(self, slug: str) -> ResolutionStatus:
        market = await self._find_market(slug)
        return await self.provider.check_resolution(market)

    async def _find_market(self, slug: str) -> NormalizedMarket:
        for market in self.provider.cached_markets():
            if market.slug == slug:
                return market
        for market in await self.provider.fetch_markets(self.filters):
            if market.slug == slug:
                return market
        raise NotFoundError(f"Market '{slug}' not found")

    async def attach_sparklines(self, markets: Sequence[NormalizedMarket]) -> list[NormalizedMarket]:
        """Populate ``outcomes[0].sparkline`` with one week of price history."""

        semaphore = asyncio.Semaphore(self._sparkline_concurrency)

        async def _with_sparkline(market: NormalizedMarket) -> NormalizedMarket:
            if not market.outcomes:
                return market
            primary = market.outcomes[0]
            token_id = primary.token_id or (market.token_ids[0] if market.token_ids else None)
            if not token_id:
                return market
            async with semaphore:
                history = await self.provider.fetch_price_history(
                    token_id, SPARKLINE_INTERVAL, series_ticker=market.series_ticker
                )
            outcomes = (replace(primary, sparkline=tuple(history)),) + market.outcomes[1:]
            return replace(market, outcomes=outcomes)

        enriched = await asyncio.gather(*(_with_sparkline(market) for market in markets))
        logger.debug("Attached sparklines to {} markets", len(enriched))
        return list(enriched)

    async def warm_markets(self) -> int:
        markets = await self.provider.fetch_markets(self.filters)
        return len(markets)

    async def warm_all_markets(self) -> int:
        markets = await self.provider.fetch_all_markets()
        return len(markets)


__all__ = ["EditorialResult", "EventQueryResult", "MarketQueryResult", "MarketService"]
