from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import httpx

from marketpulse.core.config import Settings
from marketpulse.errors import ConfigurationError

from .base import MarketProvider
from .cache import SnapshotStore
from .client import ProviderHttpClient
from .kalshi import KalshiProvider
from .polymarket import PolymarketProvider

SNAPSHOT_FILENAME = "markets.json"


def _build_polymarket(settings: Settings, transport: httpx.AsyncBaseTransport | None) -> MarketProvider:
    timeout = settings.http_timeout_seconds
    return PolymarketProvider(
        settings,
        ProviderHttpClient(
            provider="polymarket",
            base_url=str(settings.polymarket_gamma_url),
            timeout=timeout,
            transport=transport,
        ),
        clob_http=ProviderHttpClient(
            provider="polymarket-clob",
            base_url=str(settings.polymarket_clob_url),
            timeout=timeout,
            transport=transport,
        ),
        snapshot=SnapshotStore(Path(settings.cache_dir) / SNAPSHOT_FILENAME),
    )


def _build_kalshi(settings: Settings, transport: httpx.AsyncBaseTransport | None) -> MarketProvider:
    return KalshiProvider(
        settings,
        ProviderHttpClient(
            provider="kalshi",
            base_url=str(settings.kalshi_api_url),
            timeout=settings.http_timeout_seconds,
            transport=transport,
        ),
    )


ProviderFactory = Callable[[Settings, httpx.AsyncBaseTransport | None], MarketProvider]

PROVIDERS: dict[str, ProviderFactory] = {
    PolymarketProvider.id: _build_polymarket,
    KalshiProvider.id: _build_kalshi,
}


def available_providers() -> list[str]:
    return sorted(PROVIDERS)


def get_provider(
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> MarketProvider:
    """Instantiate the configured market provider."""

    factory = PROVIDERS.get(settings.provider.lower())
    if factory is None:
        raise ConfigurationError(
            f"Unknown provider '{settings.provider}'. Available: {', '.join(available_providers())}"
        )
    return factory(settings, transport)


__all__ = ["PROVIDERS", "available_providers", "get_provider"]
