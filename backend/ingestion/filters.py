"""Inclusion/exclusion filtering, event grouping and sorting of normalized markets."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import timezone
from typing import Literal

from marketpulse.domain import Event, EventOutcome, FilterConfig, NormalizedMarket

from .naming import is_placeholder_name

SortKey = Literal["volume", "volume24h", "change", "price", "newest"]

_BINARY_NAMES = frozenset({"Yes", "No"})


def _haystack(market: NormalizedMarket) -> str:
    return f"{market.question} {market.event.title}".lower()


def matches_terms(text: str, event_filters: Sequence[str], blacklist: Sequence[str]) -> bool:
    lowered = text.lower()
    if event_filters and not any(term.lower() in lowered for term in event_filters):
        return False
    return not any(term.lower() in lowered for term in blacklist)


def filter_markets(markets: Iterable[NormalizedMarket], filters: FilterConfig) -> list[NormalizedMarket]:
    return [
        market
        for market in markets
        if matches_terms(_haystack(market), filters.event_filters, filters.blacklist)
        and (not filters.active_only or not market.resolved)
    ]


def group_markets_by_event(
    markets: Iterable[NormalizedMarket],
    filter_placeholders: bool = True,
) -> list[Event]:
    events: dict[str, Event] = {}
    seen: dict[str, dict[tuple[str, str], int]] = {}

    for market in markets:
        event = events.get(market.event.id)
        if event is None:
            event = Event(id=market.event.id, title=market.event.title, category=market.event.category)
            events[market.event.id] = event
            seen[market.event.id] = {}
        positions = seen[market.event.id]

        is_binary = len(market.outcomes) == 2
        for index, outcome in enumerate(market.outcomes):
            name = outcome.name or market.question
            if filter_placeholders and is_placeholder_name(name):
                continue
            if (
                name in _BINARY_NAMES
                and is_binary
                and any(existing.name not in _BINARY_NAMES for existing in event.outcomes)
            ):
                continue

            entry = EventOutcome(
                name=name,
                price=outcome.price,
                change24h=outcome.change24h,
                volume=market.volume,
                slug=market.slug,
                market_id=market.id,
                token_id=outcome.token_id
                or (market.token_ids[index] if index < len(market.token_ids) else None),
            )
            key = (market.slug, name)
            if key in positions:
                # Same market listed twice; keep the latest quote.
                event.outcomes[positions[key]] = entry
                continue
            positions[key] = len(event.outcomes)
            event.outcomes.append(entry)

        event.total_volume += market.volume
        event.liquidity += market.liquidity
        event.market_count += 1

    grouped = list(events.values())
    for event in grouped:
        event.outcomes.sort(key=lambda item: item.price, reverse=True)
    grouped.sort(key=lambda item: item.total_volume, reverse=True)
    return grouped


def _created_ts(market: NormalizedMarket) -> float:
    created = market.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created.timestamp()


def sort_markets(markets: Iterable[NormalizedMarket], by: SortKey | str = "volume") -> list[NormalizedMarket]:
    ordered = list(markets)
    if by == "volume":
        ordered.sort(key=lambda market: market.volume, reverse=True)
    elif by == "volume24h":
        ordered.sort(key=lambda market: market.volume24h, reverse=True)
    elif by == "change":
        ordered.sort(key=lambda market: abs(market.primary.change24h), reverse=True)
    elif by == "price":
        ordered.sort(key=lambda market: market.primary.price, reverse=True)
    elif by == "newest":
        ordered.sort(key=_created_ts, reverse=True)
    return ordered


__all__ = ["SortKey", "filter_markets", "group_markets_by_event", "matches_terms", "sort_markets"]
