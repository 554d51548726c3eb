from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from dateutil import parser as date_parser

from marketpulse.domain import EventRef, NormalizedMarket, Outcome
from marketpulse.errors import NormalizationError

from .naming import extract_event_title, resolve_outcome_name

POLYMARKET_SITE_URL = "https://polymarket.com"
KALSHI_SITE_URL = "https://kalshi.com"

KALSHI_RESOLVED_STATUSES = frozenset({"determined", "finalized", "settled"})

DEFAULT_PRICE = 0.5
_DEFAULT_BINARY_OUTCOMES = ["Yes", "No"]
_CENTS = Decimal("100")


def _as_list(value: Any) -> list[Any]:
    """Return value as a list when possible, decoding JSON strings."""
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return []
        return parsed if isinstance(parsed, list) else []
    return []


def parse_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        parsed = date_parser.isoparse(str(value))
    except (ValueError, TypeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _non_negative(value: Any) -> float:
    parsed = parse_float(value)
    if parsed is None or parsed != parsed or parsed < 0:
        return 0.0
    return parsed


def clamp_price(value: float) -> float:
    if value != value:  # NaN
        return DEFAULT_PRICE
    return min(1.0, max(0.0, value))


def parse_kalshi_price(value: Any) -> float | None:
    """Convert a Kalshi price field to a decimal in [0, 1].

    ``*_dollars`` fields arrive as fixed-point strings ("0.5600"); the legacy
    fields are integer cents.
    """

    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        if isinstance(value, str):
            decimal_value = Decimal(value.strip())
        elif isinstance(value, int):
            decimal_value = Decimal(value) / _CENTS
        else:
            decimal_value = Decimal(str(value))
            if decimal_value > 1:
                decimal_value = decimal_value / _CENTS
    except (InvalidOperation, ValueError):
        return None
    if decimal_value.is_nan():
        return None
    return float(decimal_value)


def resolve_price(bid: float | None, ask: float | None, last: float | None) -> float:
    """Bid/ask midpoint when both sides quote, then last trade, then 0.5."""

    if bid and ask and bid > 0 and ask > 0:
        return clamp_price((bid + ask) / 2)
    if last and last > 0:
        return clamp_price(last)
    return DEFAULT_PRICE


def generate_slug(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug[:100]


def _kalshi_field(raw: dict[str, Any], name: str) -> float | None:
    dollars = parse_kalshi_price(raw.get(f"{name}_dollars"))
    if dollars is not None:
        return dollars
    return parse_kalshi_price(raw.get(name))


def _kalshi_count(raw: dict[str, Any], name: str) -> float:
    fixed_point = raw.get(f"{name}_fp")
    if fixed_point not in (None, ""):
        return _non_negative(fixed_point)
    return _non_negative(raw.get(name))


def _polymarket_prices(raw: dict[str, Any], count: int) -> list[float]:
    prices = [parse_float(value) for value in _as_list(raw.get("outcomePrices"))]
    if prices and all(price is not None for price in prices):
        return [clamp_price(price) for price in prices]  # type: ignore[arg-type]

    # No published outcome prices: derive the first outcome from the order book
    # and give the remaining outcomes the complement.
    primary = resolve_price(
        parse_float(raw.get("bestBid")),
        parse_float(raw.get("bestAsk")),
        parse_float(raw.get("lastTradePrice")),
    )
    if count <= 1:
        return [primary]
    return [primary] + [clamp_price(1 - primary)] * (count - 1)


def normalize_polymarket_market(
    raw: dict[str, Any],
    event: dict[str, Any] | None = None,
) -> NormalizedMarket:
    raw_id = raw.get("id")
    question = raw.get("question") or raw.get("title") or ""
    if not raw_id:
        raise NormalizationError("Polymarket market is missing an id", market_ref=raw.get("slug"))
    market_id = str(raw_id)
    slug = raw.get("slug") or generate_slug(question) or market_id

    labels = [str(label) for label in _as_list(raw.get("outcomes"))] or list(_DEFAULT_BINARY_OUTCOMES)
    token_ids = [str(token) for token in _as_list(raw.get("clobTokenIds")) if token]
    group_title = raw.get("groupItemTitle") or None

    # A grouped market is one choice inside a multi-choice event.
    if group_title:
        labels = labels[:1]
    prices = _polymarket_prices(raw, len(labels))

    change24h = parse_float(raw.get("oneDayPriceChange")) or 0.0
    change7d = parse_float(raw.get("oneWeekPriceChange")) or 0.0

    outcomes: list[Outcome] = []
    for index, label in enumerate(labels):
        name = resolve_outcome_name(short_name=group_title, question=question, label=label)
        outcomes.append(
            Outcome(
                name=name,
                price=prices[index] if index < len(prices) else 0.0,
                change24h=change24h,
                change7d=change7d,
                token_id=token_ids[index] if index < len(token_ids) else None,
            )
        )
    if not outcomes:
        raise NormalizationError("Polymarket market has no outcomes", market_ref=market_id)

    event = event or {}
    event_ref = EventRef(
        id=str(event.get("id") or market_id),
        title=event.get("title") or extract_event_title(question),
        category=event.get("category") or "unknown",
    )

    return NormalizedMarket(
        id=market_id,
        slug=slug,
        question=question,
        outcomes=tuple(outcomes),
        event=event_ref,
        created_at=parse_datetime(raw.get("createdAt")) or datetime.now(timezone.utc),
        volume=_non_negative(raw.get("volume")),
        volume24h=_non_negative(raw.get("volume24hr")),
        liquidity=_non_negative(raw.get("liquidity")),
        token_ids=tuple(token_ids),
        provider_url=f"{POLYMARKET_SITE_URL}/event/{slug}",
        resolved=bool(raw.get("closed")),
        resolution=raw.get("resolution") or None,
        resolved_at=parse_datetime(raw.get("resolvedAt")),
        resolves_at=parse_datetime(raw.get("endDate")),
    )


def normalize_kalshi_market(
    raw: dict[str, Any],
    event: dict[str, Any] | None = None,
) -> NormalizedMarket:
    ticker = raw.get("ticker")
    if not ticker:
        raise NormalizationError("Kalshi market is missing a ticker", market_ref=raw.get("event_ticker"))
    ticker = str(ticker)
    event = event or {}

    price = resolve_price(
        _kalshi_field(raw, "yes_bid"),
        _kalshi_field(raw, "yes_ask"),
        _kalshi_field(raw, "last_price"),
    )
    previous = _kalshi_field(raw, "previous_price")
    change24h = price - previous if previous and previous > 0 else 0.0

    title = raw.get("subtitle") or raw.get("title") or event.get("title") or "Unknown"
    name = resolve_outcome_name(
        short_name=raw.get("yes_sub_title") or raw.get("subtitle") or None,
        question=raw.get("title") or title,
        label=title,
    )
    event_ticker = raw.get("event_ticker") or event.get("event_ticker") or ticker

    return NormalizedMarket(
        id=ticker,
        slug=ticker,
        question=title,
        outcomes=(Outcome(name=name, price=price, change24h=change24h, token_id=ticker),),
        event=EventRef(
            id=str(event_ticker),
            title=event.get("title") or extract_event_title(title),
            category=event.get("category") or "unknown",
        ),
        created_at=parse_datetime(raw.get("open_time")) or datetime.now(timezone.utc),
        volume=_kalshi_count(raw, "volume"),
        volume24h=_kalshi_count(raw, "volume_24h"),
        # Open interest stands in for liquidity.
        liquidity=_kalshi_count(raw, "open_interest"),
        token_ids=(ticker,),
        provider_url=f"{KALSHI_SITE_URL}/markets/{event_ticker}",
        resolved=raw.get("status") in KALSHI_RESOLVED_STATUSES,
        resolution=raw.get("result") or None,
        resolves_at=parse_datetime(raw.get("close_time") or raw.get("expiration_time")),
        series_ticker=raw.get("series_ticker") or event.get("series_ticker") or None,
    )


__all__ = [
    "DEFAULT_PRICE",
    "KALSHI_RESOLVED_STATUSES",
    "clamp_price",
    "generate_slug",
    "normalize_kalshi_market",
    "normalize_polymarket_market",
    "parse_datetime",
    "parse_float",
    "parse_kalshi_price",
    "resolve_price",
]
