from __future__ import annotations

import pytest

from ingestion.registry import get_provider
from marketpulse.core.config import Settings
from marketpulse.errors import UpstreamError


@pytest.mark.network
@pytest.mark.asyncio
async def test_polymarket_provider_live_fetches_markets(tmp_path):
    settings = Settings(
        _env_file=None,
        provider="polymarket",
        cache_dir=str(tmp_path),
        ingestion_page_size=5,
        ingestion_max_pages=1,
    )
    provider = get_provider(settings)
    try:
        markets = await provider.fetch_all_markets()
    except UpstreamError as exc:
        pytest.skip(f"Polymarket API unavailable: {exc}")
    finally:
        await provider.aclose()

    assert markets, "Polymarket API returned no markets"
    for market in markets:
        assert market.id, "market missing identifier"
        assert market.question, "market missing question text"
        assert 0.0 <= market.primary.price <= 1.0
