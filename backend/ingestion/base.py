from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, ClassVar

from loguru import logger

from marketpulse.core.config import Settings
from marketpulse.domain import (
    PRICE_INTERVALS,
    FilterConfig,
    NormalizedMarket,
    PricePoint,
    ResolutionStatus,
)
from marketpulse.errors import NormalizationError, UpstreamError, ValidationError

from .cache import CacheEntry, ResilientCache, SnapshotStore
from .client import ProviderHttpClient
from .filters import filter_markets, matches_terms

MARKETS_KEY = "markets"
DIAGNOSTICS_LIMIT = 200

RawEvent = dict[str, Any]
RawMarket = dict[str, Any]


@dataclass(slots=True, frozen=True)
class Diagnostic:
    """A market skipped during normalization."""

    provider: str
    market_ref: str | None
    reason: str
    recorded_at: datetime


class MarketProvider(ABC):
    """Shared fetch/normalize/cache flow for one upstream market source.

    Subclasses supply the upstream calls (``_fetch_events``,
    ``_request_price_history``, ``_request_resolution``), the raw-market
    normalizer and the deep-link format. Caching, event pre-filtering,
    per-market failure isolation and the resolution fallback live here.
    """

    id: ClassVar[str]
    requires_series: ClassVar[bool] = False

    def __init__(
        self,
        settings: Settings,
        http: ProviderHttpClient,
        *,
        snapshot: SnapshotStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.http = http
        self._snapshot = snapshot
        self.diagnostics: deque[Diagnostic] = deque(maxlen=DIAGNOSTICS_LIMIT)

        self._markets_cache: ResilientCache[list[NormalizedMarket]] = ResilientCache(
            f"{self.id} markets",
            settings.market_cache_ttl_seconds,
            clock=clock,
            on_store=self._persist_snapshot if snapshot is not None else None,
        )
        self._all_markets_cache: ResilientCache[list[NormalizedMarket]] = ResilientCache(
            f"{self.id} all-markets", settings.all_markets_cache_ttl_seconds, clock=clock
        )
        self._price_cache: ResilientCache[list[PricePoint]] = ResilientCache(
            f"{self.id} price-history", settings.price_cache_ttl_seconds, clock=clock
        )

        if snapshot is not None:
            entry = snapshot.load()
            if entry is not None:
                self._markets_cache.seed(MARKETS_KEY, entry)

    # -- upstream hooks -------------------------------------------------

    @abstractmethod
    async def _fetch_events(self) -> list[RawEvent]:
        """Return every open event with its markets nested under ``markets``."""

    @abstractmethod
    def _normalize(self, raw: RawMarket, event: RawEvent) -> NormalizedMarket:
        ...

    @abstractmethod
    async def _request_price_history(
        self, token_id: str, interval: str, series_ticker: str | None
    ) -> list[PricePoint]:
        ...

    @abstractmethod
    async def _request_resolution(self, market: NormalizedMarket) -> ResolutionStatus:
        ...

    @abstractmethod
    def get_market_url(self, market: NormalizedMarket) -> str:
        ...

    def get_outcome_url(self, market: NormalizedMarket, index: int = 0) -> str:
        return self.get_market_url(market)

    def _market_ref(self, raw: RawMarket) -> str | None:
        ref = raw.get("slug") or raw.get("ticker") or raw.get("id")
        return str(ref) if ref is not None else None

    def _series_for(self, token_id: str, series_ticker: str | None) -> str | None:
        return series_ticker

    # -- public contract ------------------------------------------------

    async def fetch_markets(self, filters: FilterConfig) -> list[NormalizedMarket]:
        markets = await self._markets_cache.get(MARKETS_KEY, lambda: self._load_markets(filters))
        return filter_markets(markets, filters)

    async def fetch_all_markets(self) -> list[NormalizedMarket]:
        return await self._all_markets_cache.get(MARKETS_KEY, lambda: self._load_markets(None))

    async def fetch_price_history(
        self,
        token_id: str,
        interval: str = "1w",
        *,
        series_ticker: str | None = None,
    ) -> list[PricePoint]:
        if interval not in PRICE_INTERVALS:
            raise ValidationError(f"interval must be one of {', '.join(PRICE_INTERVALS)}")

        series = self._series_for(token_id, series_ticker)
        if self.requires_series and not series:
            logger.warning("No series ticker for {} market {}; skipping price history", self.id, token_id)
            return []

        try:
            return await self._price_cache.get(
                f"{token_id}:{interval}",
                lambda: self._request_price_history(token_id, interval, series),
            )
        except UpstreamError as exc:
            logger.warning("Price history unavailable for {} {}: {}", self.id, token_id, exc)
            return []

    async def check_resolution(self, market: NormalizedMarket) -> ResolutionStatus:
        try:
            return await self._request_resolution(market)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to check resolution for {} {}: {}", self.id, market.slug, exc)
            return ResolutionStatus(resolved=market.resolved)

    def cached_markets(self) -> list[NormalizedMarket]:
        """Markets currently held by either listing cache, without any I/O."""

        merged: dict[str, NormalizedMarket] = {}
        for cache in (self._all_markets_cache, self._markets_cache):
            entry = cache.peek(MARKETS_KEY)
            if entry is not None:
                merged.update((market.id, market) for market in entry.data)
        return list(merged.values())

    def last_updated(self) -> datetime | None:
        entry = self._markets_cache.peek(MARKETS_KEY)
        if entry is None:
            return None
        return datetime.fromtimestamp(entry.timestamp, tz=timezone.utc)

    def cache_stats(self) -> list[dict[str, Any]]:
        return [
            self._markets_cache.stats(),
            self._all_markets_cache.stats(),
            self._price_cache.stats(),
        ]

    async def aclose(self) -> None:
        await self.http.aclose()

    # -- internals ------------------------------------------------------

    async def _load_markets(self, filters: FilterConfig | None) -> list[NormalizedMarket]:
        events = await self._fetch_events()
        if filters is not None:
            events = [
                event
                for event in events
                if matches_terms(str(event.get("title") or ""), filters.event_filters, filters.blacklist)
            ]
        markets = list(self._normalize_events(events))
        logger.info("{} normalized {} markets from {} events", self.id, len(markets), len(events))
        return markets

    def _normalize_events(self, events: Iterable[RawEvent]) -> Iterable[NormalizedMarket]:
        for event in events:
            raw_markets = event.get("markets") or []
            if not isinstance(raw_markets, list):
                continue
            for raw in raw_markets:
                if not isinstance(raw, dict):
                    continue
                try:
                    yield self._normalize(raw, event)
                except (NormalizationError, ValueError, TypeError, KeyError) as exc:
                    self._record_skip(raw, exc)

    def _record_skip(self, raw: RawMarket, exc: Exception) -> None:
        market_ref = self._market_ref(raw)
        logger.warning("Skipping {} market {}: {}", self.id, market_ref, exc)
        self.diagnostics.append(
            Diagnostic(
                provider=self.id,
                market_ref=market_ref,
                reason=str(exc),
                recorded_at=datetime.now(timezone.utc),
            )
        )

    def _persist_snapshot(self, key: Any, entry: CacheEntry[list[NormalizedMarket]]) -> None:
        if self._snapshot is not None:
            self._snapshot.save(entry)


__all__ = ["DIAGNOSTICS_LIMIT", "MARKETS_KEY", "Diagnostic", "MarketProvider", "RawEvent", "RawMarket"]
