from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

from loguru import logger

from marketpulse.core.config import Settings
from marketpulse.domain import NormalizedMarket, PricePoint, ResolutionStatus
from marketpulse.errors import UpstreamError

from .base import MarketProvider, RawEvent, RawMarket
from .client import ProviderHttpClient
from .normalize import (
    KALSHI_RESOLVED_STATUSES,
    KALSHI_SITE_URL,
    clamp_price,
    normalize_kalshi_market,
    parse_float,
    parse_kalshi_price,
)

# (candle width in minutes, lookback in days) per display interval.
CANDLESTICK_WINDOWS = {"1d": (60, 1), "1w": (60, 7), "1m": (1440, 30)}


def _candle_close(candle: dict[str, Any]) -> float | None:
    price = candle.get("price") or {}
    if not isinstance(price, dict):
        return None
    close = price.get("close_dollars")
    if close in (None, ""):
        close = price.get("close_cents", price.get("close"))
    return parse_kalshi_price(close)


class KalshiProvider(MarketProvider):
    """Kalshi trade API: cursor-paginated events, series candlesticks."""

    id = "kalshi"
    requires_series = True

    def __init__(
        self,
        settings: Settings,
        http: ProviderHttpClient,
        *,
        now: Callable[[], float] = time.time,
        **kwargs: Any,
    ) -> None:
        super().__init__(settings, http, **kwargs)
        self._now = now

    async def _fetch_events(self) -> list[RawEvent]:
        events: list[RawEvent] = []
        cursor: str | None = None
        for _ in range(self.settings.ingestion_max_pages):
            payload = await self.http.get_json(
                "/events",
                {
                    "status": "open",
                    "with_nested_markets": True,
                    "limit": self.settings.ingestion_page_size,
                    "cursor": cursor,
                },
                expect=dict,
            )
            batch = payload.get("events")
            if not isinstance(batch, list):
                raise UpstreamError(
                    f"Kalshi /events returned no event list (keys: {sorted(payload)})",
                    provider=self.id,
                    url="/events",
                )
            events.extend(item for item in batch if isinstance(item, dict))
            cursor = payload.get("cursor") or None
            if not cursor:
                break
        else:
            logger.warning("Kalshi listing truncated after {} pages", self.settings.ingestion_max_pages)
        return events

    def _normalize(self, raw: RawMarket, event: RawEvent) -> NormalizedMarket:
        return normalize_kalshi_market(raw, event)

    def _series_for(self, token_id: str, series_ticker: str | None) -> str | None:
        if series_ticker:
            return series_ticker
        for market in self.cached_markets():
            if market.id == token_id:
                return market.series_ticker
        return None

    async def _request_price_history(
        self, token_id: str, interval: str, series_ticker: str | None
    ) -> list[PricePoint]:
        period, days = CANDLESTICK_WINDOWS[interval]
        end_ts = int(self._now())
        path = f"/series/{series_ticker}/markets/{token_id}/candlesticks"
        payload = await self.http.get_json(
            path,
            {"start_ts": end_ts - days * 24 * 60 * 60, "end_ts": end_ts, "period_interval": period},
            expect=dict,
        )
        candles = payload.get("candlesticks")
        if not isinstance(candles, list):
            raise UpstreamError("Kalshi returned malformed candlesticks", provider=self.id, url=path)
        history: list[PricePoint] = []
        for candle in candles:
            if not isinstance(candle, dict):
                continue
            timestamp = parse_float(candle.get("end_period_ts"))
            close = _candle_close(candle)
            if timestamp is None or close is None:
                continue
            history.append(PricePoint(t=int(timestamp), p=clamp_price(close)))
        return history

    async def _request_resolution(self, market: NormalizedMarket) -> ResolutionStatus:
        if not market.event.id:
            return ResolutionStatus(resolved=market.resolved)
        payload = await self.http.get_json(
            f"/events/{market.event.id}", {"with_nested_markets": True}, expect=dict
        )
        event = payload.get("event")
        if not isinstance(event, dict):
            return ResolutionStatus(resolved=market.resolved)
        fresh = next(
            (
                item
                for item in event.get("markets") or []
                if isinstance(item, dict) and item.get("ticker") == market.id
            ),
            None,
        )
        if fresh is None:
            return ResolutionStatus(resolved=market.resolved)
        return ResolutionStatus(
            resolved=fresh.get("status") in KALSHI_RESOLVED_STATUSES,
            outcome=fresh.get("result") or None,
        )

    def get_market_url(self, market: NormalizedMarket) -> str:
        return f"{KALSHI_SITE_URL}/markets/{market.event.id or market.slug}"


__all__ = ["CANDLESTICK_WINDOWS", "KalshiProvider"]
