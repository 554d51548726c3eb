from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from marketpulse.core.config import Settings
from marketpulse.domain import EventRef, NormalizedMarket, Outcome


def make_market(
    slug: str,
    *,
    price: float = 0.5,
    change24h: float = 0.0,
    volume: float = 1_000.0,
    volume24h: float = 0.0,
    event_id: str = "event-1",
    event_title: str = "Test Event",
    question: str | None = None,
    outcome_names: tuple[str, ...] = ("Yes", "No"),
    created_at: datetime | None = None,
    resolved: bool = False,
    series_ticker: str | None = None,
) -> NormalizedMarket:
    prices = [price] + [round(1 - price, 4)] * (len(outcome_names) - 1)
    outcomes = tuple(
        Outcome(
            name=name,
            price=prices[index],
            change24h=change24h if index == 0 else -change24h,
            token_id=f"{slug}-{index}",
        )
        for index, name in enumerate(outcome_names)
    )
    return NormalizedMarket(
        id=f"id-{slug}",
        slug=slug,
        question=question or f"Will {slug} happen?",
        outcomes=outcomes,
        event=EventRef(id=event_id, title=event_title, category="sports"),
        created_at=created_at or datetime(2024, 1, 1, tzinfo=timezone.utc),
        volume=volume,
        volume24h=volume24h,
        liquidity=volume / 10,
        token_ids=tuple(outcome.token_id for outcome in outcomes if outcome.token_id),
        provider_url=f"https://polymarket.com/event/{slug}",
        resolved=resolved,
        series_ticker=series_ticker,
    )


@pytest.fixture
def market_factory():
    return make_market


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        provider="polymarket",
        category="sports",
        event_filters=[],
        blacklist=[],
        deployment_id="test-deployment",
        database_url=f"sqlite:///{tmp_path / 'marketpulse.db'}",
        cache_dir=str(tmp_path / "cache"),
        enable_background_refresh=False,
        ingestion_page_size=2,
        ingestion_max_pages=3,
        broadcast_poll_interval=0.01,
        editorial_seed=7,
    )


@pytest.fixture
def polymarket_event_payload() -> dict[str, Any]:
    return {
        "id": "9001",
        "title": "Super Bowl Champion 2025",
        "category": "Sports",
        "markets": [
            {
                "id": "501",
                "question": "Will the Kansas City Chiefs win Super Bowl 2025?",
                "slug": "chiefs-super-bowl-2025",
                "groupItemTitle": "Kansas City Chiefs",
                "outcomes": '["Yes", "No"]',
                "outcomePrices": '["0.42", "0.58"]',
                "clobTokenIds": '["tok-chiefs-yes", "tok-chiefs-no"]',
                "oneDayPriceChange": 0.03,
                "oneWeekPriceChange": -0.01,
                "volume": "250000.5",
                "volume24hr": 12000,
                "liquidity": "40000",
                "createdAt": "2024-09-01T12:00:00Z",
                "endDate": "2025-02-09T23:00:00Z",
                "closed": False,
            },
            {
                "id": "502",
                "question": "Will the Detroit Lions win Super Bowl 2025?",
                "slug": "lions-super-bowl-2025",
                "groupItemTitle": "Detroit Lions",
                "outcomes": ["Yes", "No"],
                "outcomePrices": ["0.21", "0.79"],
                "clobTokenIds": ["tok-lions-yes", "tok-lions-no"],
                "volume": 180000,
                "volume24hr": 9000,
                "liquidity": 25000,
                "createdAt": "2024-09-01T12:00:00Z",
                "closed": False,
            },
            {
                "id": "503",
                "question": "Will Team K win Super Bowl 2025?",
                "slug": "team-k-super-bowl-2025",
                "groupItemTitle": "Team K",
                "outcomes": ["Yes", "No"],
                "outcomePrices": ["0.01", "0.99"],
                "volume": 10,
            },
        ],
    }


@pytest.fixture
def kalshi_market_payload() -> dict[str, Any]:
    return {
        "ticker": "KXMVP-25-JALLEN",
        "event_ticker": "KXMVP-25",
        "series_ticker": "KXMVP",
        "title": "Will Josh Allen win MVP?",
        "yes_sub_title": "Josh Allen",
        "yes_bid_dollars": "0.5400",
        "yes_ask_dollars": "0.5600",
        "last_price": 53,
        "previous_price_dollars": "0.5000",
        "volume_fp": "1500.00",
        "volume_24h": 300,
        "open_interest": 800,
        "status": "active",
        "open_time": "2024-10-01T00:00:00Z",
        "close_time": "2025-02-06T00:00:00Z",
    }


@pytest.fixture
def kalshi_event_payload(kalshi_market_payload) -> dict[str, Any]:
    return {
        "event_ticker": "KXMVP-25",
        "series_ticker": "KXMVP",
        "title": "NFL MVP 2025",
        "category": "Sports",
        "markets": [kalshi_market_payload],
    }
