"""Typed domain representations used across ingestion, editorial, and APIs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

PriceInterval = Literal["1d", "1w", "1m"]
PRICE_INTERVALS: tuple[str, ...] = ("1d", "1w", "1m")


@dataclass(slots=True, frozen=True)
class PricePoint:
    """One sample of a price series; ``t`` is a unix timestamp in seconds."""

    t: int
    p: float


@dataclass(slots=True, frozen=True)
class Outcome:
    """One priced proposition within a market."""

    name: str
    price: float
    change24h: float = 0.0
    change7d: float = 0.0
    token_id: str | None = None
    sparkline: tuple[PricePoint, ...] | None = None


@dataclass(slots=True, frozen=True)
class EventRef:
    """Parent event info carried by every market."""

    id: str
    title: str
    category: str = "unknown"


@dataclass(slots=True, frozen=True)
class NormalizedMarket:
    """Provider-neutral market snapshot."""

    id: str
    slug: str
    question: str
    outcomes: tuple[Outcome, ...]
    event: EventRef
    created_at: datetime
    volume: float = 0.0
    volume24h: float = 0.0
    liquidity: float = 0.0
    token_ids: tuple[str, ...] = ()
    provider_url: str = ""
    resolved: bool = False
    resolution: str | None = None
    resolved_at: datetime | None = None
    resolves_at: datetime | None = None
    series_ticker: str | None = None

    @property
    def primary(self) -> Outcome:
        return self.outcomes[0]


@dataclass(slots=True, frozen=True)
class ResolutionStatus:
    resolved: bool
    outcome: str | None = None
    resolved_at: datetime | None = None


@dataclass(slots=True, frozen=True)
class FilterConfig:
    """Inclusion/exclusion rules; terms match case-insensitively."""

    category: str = "all"
    event_filters: tuple[str, ...] = ()
    blacklist: tuple[str, ...] = ()
    active_only: bool = True


@dataclass(slots=True, frozen=True)
class EventOutcome:
    """Outcome entry inside an event; points back at its market by slug/id."""

    name: str
    price: float
    change24h: float
    volume: float
    slug: str
    market_id: str
    token_id: str | None = None


@dataclass(slots=True)
class Event:
    """Markets aggregated under one real-world happening."""

    id: str
    title: str
    category: str
    outcomes: list[EventOutcome] = field(default_factory=list)
    total_volume: float = 0.0
    liquidity: float = 0.0
    market_count: int = 0


@dataclass(slots=True, frozen=True)
class VoteAggregate:
    yes: int = 0
    no: int = 0
    total: int = 0
    yes_percent: float = 0.0
    no_percent: float = 0.0

    @classmethod
    def from_counts(cls, yes: int, no: int) -> "VoteAggregate":
        total = yes + no
        if total == 0:
            return cls()
        return cls(
            yes=yes,
            no=no,
            total=total,
            yes_percent=round(yes * 100 / total, 1),
            no_percent=round(no * 100 / total, 1),
        )


@dataclass(slots=True, frozen=True)
class EditorialEntry:
    """A market selected by an editorial theme, with its narrative copy."""

    market: NormalizedMarket
    theme: str
    editorial_copy: str
    theme_label: str
    theme_color: str
    crowd_vote: float | None = None
    gap: float | None = None
    conviction: float | None = None
    crowd_says_yes: bool | None = None
    vote_count: int | None = None
