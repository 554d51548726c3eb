"""Domain-level data structures shared across the application."""

from .models import (
    PRICE_INTERVALS,
    EditorialEntry,
    Event,
    EventOutcome,
    EventRef,
    FilterConfig,
    NormalizedMarket,
    Outcome,
    PriceInterval,
    PricePoint,
    ResolutionStatus,
    VoteAggregate,
)

__all__ = [
    "PRICE_INTERVALS",
    "EditorialEntry",
    "Event",
    "EventOutcome",
    "EventRef",
    "FilterConfig",
    "NormalizedMarket",
    "Outcome",
    "PriceInterval",
    "PricePoint",
    "ResolutionStatus",
    "VoteAggregate",
]
