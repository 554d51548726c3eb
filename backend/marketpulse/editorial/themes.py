"""Pure ranking functions, one per editorial theme.

Each function takes normalized markets (and, for the crowd themes, vote
aggregates keyed by market slug) and returns the selected markets in display
order as ``ThemePick`` values. Prices and changes are fractions (0.35 = 35%);
vote percentages and the gap/conviction thresholds are percentage points.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from marketpulse.domain import NormalizedMarket, VoteAggregate

VoteMap = Mapping[str, VoteAggregate]


@dataclass(slots=True, frozen=True)
class EditorialPolicy:
    big_mover_min_change: float = 0.02
    debate_min_price: float = 0.35
    debate_max_price: float = 0.65
    sentiment_gap_threshold: float = 5.0
    longshot_min_price: float = 0.01
    longshot_max_price: float = 0.15
    longshot_min_change: float = 0.005
    crowd_conviction_threshold: float = 85.0
    volume_surge_min_volume: float = 10_000.0
    volume_surge_min_ratio: float = 0.08
    fading_max_change: float = -0.02
    fresh_market_hours: float = 48.0

    @classmethod
    def from_settings(cls, settings) -> "EditorialPolicy":
        return cls(
            sentiment_gap_threshold=settings.sentiment_gap_threshold,
            crowd_conviction_threshold=settings.crowd_conviction_threshold,
            volume_surge_min_volume=settings.volume_surge_min_volume,
            volume_surge_min_ratio=settings.volume_surge_min_ratio,
            fresh_market_hours=settings.fresh_market_hours,
        )


DEFAULT_POLICY = EditorialPolicy()


@dataclass(slots=True, frozen=True)
class ThemePick:
    market: NormalizedMarket
    crowd_vote: float | None = None
    gap: float | None = None
    conviction: float | None = None
    crowd_says_yes: bool | None = None
    vote_count: int | None = None


def _price(market: NormalizedMarket) -> float:
    return market.outcomes[0].price if market.outcomes else 0.0


def _change(market: NormalizedMarket) -> float:
    return market.outcomes[0].change24h if market.outcomes else 0.0


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def find_big_movers(
    markets: Sequence[NormalizedMarket], policy: EditorialPolicy = DEFAULT_POLICY
) -> list[ThemePick]:
    selected = [m for m in markets if abs(_change(m)) > policy.big_mover_min_change]
    selected.sort(key=lambda m: abs(_change(m)), reverse=True)
    return [ThemePick(m) for m in selected[:10]]


def find_debate_fuel(
    markets: Sequence[NormalizedMarket], policy: EditorialPolicy = DEFAULT_POLICY
) -> list[ThemePick]:
    selected = [
        m for m in markets if policy.debate_min_price <= _price(m) <= policy.debate_max_price
    ]
    selected.sort(key=lambda m: m.volume, reverse=True)
    return [ThemePick(m) for m in selected[:8]]


def find_sentiment_gaps(
    markets: Sequence[NormalizedMarket],
    votes: VoteMap,
    policy: EditorialPolicy = DEFAULT_POLICY,
) -> list[ThemePick]:
    if not votes:
        return []
    picks: list[ThemePick] = []
    for market in markets:
        vote = votes.get(market.slug)
        if vote is None or vote.total == 0:
            continue
        gap = abs(_price(market) * 100 - vote.yes_percent)
        if gap > policy.sentiment_gap_threshold:
            picks.append(ThemePick(market, crowd_vote=vote.yes_percent / 100, gap=gap / 100))
    picks.sort(key=lambda pick: pick.gap or 0.0, reverse=True)
    return picks[:8]


def find_longshot_watch(
    markets: Sequence[NormalizedMarket], policy: EditorialPolicy = DEFAULT_POLICY
) -> list[ThemePick]:
    selected = [
        m
        for m in markets
        if policy.longshot_min_price < _price(m) < policy.longshot_max_price
        and _change(m) > policy.longshot_min_change
    ]
    selected.sort(key=_change, reverse=True)
    return [ThemePick(m) for m in selected[:8]]


def find_crowd_favorites(
    markets: Sequence[NormalizedMarket],
    votes: VoteMap,
    policy: EditorialPolicy = DEFAULT_POLICY,
) -> list[ThemePick]:
    if not votes:
        return []
    picks: list[ThemePick] = []
    for market in markets:
        vote = votes.get(market.slug)
        if vote is None or vote.total == 0:
            continue
        conviction = max(vote.yes_percent, vote.no_percent)
        if conviction >= policy.crowd_conviction_threshold:
            picks.append(
                ThemePick(
                    market,
                    crowd_vote=vote.yes_percent / 100,
                    conviction=conviction / 100,
                    crowd_says_yes=vote.yes_percent > vote.no_percent,
                )
            )
    picks.sort(key=lambda pick: pick.conviction or 0.0, reverse=True)
    return picks[:8]


def find_volume_surge(
    markets: Sequence[NormalizedMarket], policy: EditorialPolicy = DEFAULT_POLICY
) -> list[ThemePick]:
    selected = [
        m
        for m in markets
        if m.volume24h > policy.volume_surge_min_volume
        and m.volume > 0
        and m.volume24h / m.volume > policy.volume_surge_min_ratio
    ]
    selected.sort(key=lambda m: m.volume24h, reverse=True)
    return [ThemePick(m) for m in selected[:8]]


def find_fading_fast(
    markets: Sequence[NormalizedMarket], policy: EditorialPolicy = DEFAULT_POLICY
) -> list[ThemePick]:
    selected = [m for m in markets if _change(m) < policy.fading_max_change]
    selected.sort(key=_change)
    return [ThemePick(m) for m in selected[:10]]


def find_most_engaged(markets: Sequence[NormalizedMarket], votes: VoteMap) -> list[ThemePick]:
    if not votes:
        return []
    picks = [
        ThemePick(
            market,
            crowd_vote=votes[market.slug].yes_percent / 100,
            vote_count=votes[market.slug].total,
        )
        for market in markets
        if market.slug in votes and votes[market.slug].total >= 1
    ]
    picks.sort(key=lambda pick: (pick.vote_count or 0, pick.market.volume), reverse=True)
    return picks[:8]


def find_fresh_markets(
    markets: Sequence[NormalizedMarket],
    policy: EditorialPolicy = DEFAULT_POLICY,
    *,
    now: datetime | None = None,
) -> list[ThemePick]:
    now = _aware(now or datetime.now(timezone.utc))
    cutoff = now - timedelta(hours=policy.fresh_market_hours)
    selected = [m for m in markets if _aware(m.created_at) > cutoff]
    selected.sort(key=lambda m: _aware(m.created_at), reverse=True)
    return [ThemePick(m) for m in selected[:5]]


__all__ = [
    "DEFAULT_POLICY",
    "EditorialPolicy",
    "ThemePick",
    "VoteMap",
    "find_big_movers",
    "find_crowd_favorites",
    "find_debate_fuel",
    "find_fading_fast",
    "find_fresh_markets",
    "find_longshot_watch",
    "find_most_engaged",
    "find_sentiment_gaps",
    "find_volume_surge",
]
