from __future__ import annotations

from typing import Any

from loguru import logger

from marketpulse.core.config import Settings
from marketpulse.domain import NormalizedMarket, PricePoint, ResolutionStatus
from marketpulse.errors import UpstreamError

from .base import MarketProvider, RawEvent, RawMarket
from .client import ProviderHttpClient
from .normalize import (
    POLYMARKET_SITE_URL,
    clamp_price,
    normalize_polymarket_market,
    parse_datetime,
    parse_float,
)

# CLOB sample spacing in minutes per display interval.
PRICE_HISTORY_FIDELITY = {"1d": 60, "1w": 360, "1m": 720}


class PolymarketProvider(MarketProvider):
    """Gamma API for listings and resolution, CLOB API for price history."""

    id = "polymarket"

    def __init__(
        self, settings: Settings, http: ProviderHttpClient, *, clob_http: ProviderHttpClient, **kwargs: Any
    ) -> None:
        super().__init__(settings, http, **kwargs)
        self.clob_http = clob_http

    async def aclose(self) -> None:
        await super().aclose()
        await self.clob_http.aclose()

    async def _fetch_events(self) -> list[RawEvent]:
        page_size = self.settings.ingestion_page_size
        events: list[RawEvent] = []
        for page in range(self.settings.ingestion_max_pages):
            payload = await self.http.get_json(
                "/events",
                {
                    "active": True,
                    "closed": False,
                    "limit": page_size,
                    "offset": page * page_size,
                },
                expect=(list, dict),
            )
            batch = payload if isinstance(payload, list) else payload.get("data")
            if not isinstance(batch, list):
                raise UpstreamError(
                    f"Polymarket /events returned no event list (keys: {sorted(payload)})",
                    provider=self.id,
                    url="/events",
                )
            events.extend(item for item in batch if isinstance(item, dict))
            if len(batch) < page_size:
                break
        else:
            logger.warning(
                "Polymarket listing truncated at {} pages of {} events",
                self.settings.ingestion_max_pages,
                page_size,
            )
        return events

    def _normalize(self, raw: RawMarket, event: RawEvent) -> NormalizedMarket:
        return normalize_polymarket_market(raw, event)

    async def _request_price_history(
        self, token_id: str, interval: str, series_ticker: str | None
    ) -> list[PricePoint]:
        payload = await self.clob_http.get_json(
            "/prices-history",
            {"market": token_id, "interval": "max", "fidelity": PRICE_HISTORY_FIDELITY[interval]},
            expect=dict,
        )
        points = payload.get("history")
        if not isinstance(points, list):
            raise UpstreamError(
                "Polymarket /prices-history returned a malformed history",
                provider=self.id,
                url="/prices-history",
            )
        history: list[PricePoint] = []
        for point in points:
            timestamp = parse_float(point.get("t")) if isinstance(point, dict) else None
            if timestamp is None:
                continue
            history.append(PricePoint(t=int(timestamp), p=clamp_price(parse_float(point.get("p")) or 0.0)))
        return history

    async def _request_resolution(self, market: NormalizedMarket) -> ResolutionStatus:
        payload = await self.http.get_json("/events", {"slug": market.slug}, expect=list)
        event: dict[str, Any] | None = payload[0] if payload else None
        if not isinstance(event, dict):
            return ResolutionStatus(resolved=False)
        return ResolutionStatus(
            resolved=bool(event.get("closed")),
            outcome=event.get("resolution") or None,
            resolved_at=parse_datetime(event.get("resolvedAt")),
        )

    def get_market_url(self, market: NormalizedMarket) -> str:
        return f"{POLYMARKET_SITE_URL}/event/{market.slug}"


__all__ = ["PRICE_HISTORY_FIDELITY", "PolymarketProvider"]
