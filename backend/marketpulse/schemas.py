from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .domain import EditorialEntry


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class PricePoint(CamelModel):
    t: int
    p: float


class Outcome(CamelModel):
    name: str
    price: float
    change24h: float = 0.0
    change7d: float = 0.0
    token_id: str | None = None
    sparkline: list[PricePoint] | None = None


class EventRef(CamelModel):
    id: str
    title: str
    category: str


class Market(CamelModel):
    id: str
    slug: str
    question: str
    outcomes: list[Outcome]
    event: EventRef
    created_at: datetime
    volume: float
    volume24h: float
    liquidity: float
    token_ids: list[str]
    provider_url: str
    resolved: bool
    resolution: str | None = None
    resolved_at: datetime | None = None
    resolves_at: datetime | None = None
    series_ticker: str | None = None


class MarketsMeta(CamelModel):
    provider: str
    category: str
    filters: list[str]
    blacklist: list[str]
    count: int
    last_updated: datetime


class MarketList(CamelModel):
    markets: list[Market]
    meta: MarketsMeta


class EventOutcome(CamelModel):
    name: str
    price: float
    change24h: float
    volume: float
    slug: str
    market_id: str
    token_id: str | None = None


class Event(CamelModel):
    id: str
    title: str
    category: str
    outcomes: list[EventOutcome]
    total_volume: float
    liquidity: float
    market_count: int


class EventsMeta(CamelModel):
    provider: str
    category: str
    filtered: bool
    count: int
    last_updated: datetime


class EventList(CamelModel):
    events: list[Event]
    meta: EventsMeta


class EditorialMarket(Market):
    """A market flattened together with the editorial fields of its theme."""

    theme: str
    editorial_copy: str
    theme_label: str
    theme_color: str
    crowd_vote: float | None = None
    gap: float | None = None
    conviction: float | None = None
    crowd_says_yes: bool | None = None
    vote_count: int | None = None

    @classmethod
    def from_entry(cls, entry: EditorialEntry) -> "EditorialMarket":
        market = Market.model_validate(entry.market)
        return cls(
            **market.model_dump(),
            theme=entry.theme,
            editorial_copy=entry.editorial_copy,
            theme_label=entry.theme_label,
            theme_color=entry.theme_color,
            crowd_vote=entry.crowd_vote,
            gap=entry.gap,
            conviction=entry.conviction,
            crowd_says_yes=entry.crowd_says_yes,
            vote_count=entry.vote_count,
        )


class RotationSlot(CamelModel):
    theme: str
    duration_ms: int


class EditorialMeta(CamelModel):
    last_updated: datetime
    votes_included: bool


class EditorialResponse(CamelModel):
    themes: dict[str, list[EditorialMarket]]
    rotation: list[RotationSlot]
    meta: EditorialMeta


class PriceHistory(CamelModel):
    history: list[PricePoint]
    token_id: str
    interval: str


class VoteAggregate(CamelModel):
    yes: int = 0
    no: int = 0
    total: int = 0
    yes_percent: float = 0.0
    no_percent: float = 0.0


class ResultsResponse(CamelModel):
    results: dict[str, VoteAggregate]
    total_votes: int
    markets_with_votes: int
    last_updated: datetime


class MarketResults(CamelModel):
    market_slug: str
    results: VoteAggregate
    last_updated: datetime


class VoterVotes(CamelModel):
    votes: dict[str, str]


class VoteRequest(CamelModel):
    """Fields stay untyped so the vote service can report the precise problem."""

    voter_token: Any = None
    market_slug: Any = None
    vote: Any = None
    price_at_vote: Any = None


class VoteResponse(CamelModel):
    success: bool
    vote_id: int | None = None
    results: VoteAggregate | None = None
    error: str | None = None


class ResolutionResponse(CamelModel):
    slug: str
    resolved: bool
    outcome: str | None = None
    resolved_at: datetime | None = None


class PublicConfig(CamelModel):
    provider: str
    category: str
    event_filters: list[str]
    blacklist: list[str]
    site_name: str
    deployment_id: str
    countdown: dict[str, str] | None = None
    affiliate_url: str
    refresh_intervals: dict[str, int]
    default_theme: str
    votes_enabled: bool


class CacheStats(CamelModel):
    name: str
    ttl_seconds: float
    entries: int
    refreshing: int


class Health(CamelModel):
    status: str
    provider: str
    caches: list[CacheStats]


class ErrorBody(CamelModel):
    error: str
    message: str
