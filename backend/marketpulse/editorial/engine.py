from __future__ import annotations

import random
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime

from loguru import logger

from marketpulse.domain import EditorialEntry, NormalizedMarket, VoteAggregate

from .copy import DEFAULT_THEME_COLOR, THEME_COLORS, THEME_LABELS, generate_editorial_copy
from .themes import (
    DEFAULT_POLICY,
    EditorialPolicy,
    ThemePick,
    find_big_movers,
    find_crowd_favorites,
    find_debate_fuel,
    find_fading_fast,
    find_fresh_markets,
    find_longshot_watch,
    find_most_engaged,
    find_sentiment_gaps,
    find_volume_surge,
)

THEME_ORDER: tuple[str, ...] = (
    "bigMovers",
    "debateFuel",
    "sentimentGaps",
    "longshotWatch",
    "crowdFavorites",
    "volumeSurge",
    "fadingFast",
    "mostEngaged",
    "freshMarkets",
)

CROWD_DEPENDENT_THEMES: frozenset[str] = frozenset({"sentimentGaps", "crowdFavorites", "mostEngaged"})


@dataclass(slots=True, frozen=True)
class RotationSlot:
    theme: str
    duration_ms: int


EDITORIAL_ROTATION: tuple[RotationSlot, ...] = (
    RotationSlot("bigMovers", 12_000),
    RotationSlot("debateFuel", 10_000),
    RotationSlot("sentimentGaps", 12_000),
    RotationSlot("longshotWatch", 10_000),
    RotationSlot("crowdFavorites", 10_000),
    RotationSlot("volumeSurge", 10_000),
    RotationSlot("fadingFast", 10_000),
    RotationSlot("mostEngaged", 10_000),
)

EditorialThemes = dict[str, list[EditorialEntry]]


def enrich(theme: str, pick: ThemePick, rng: random.Random) -> EditorialEntry:
    return EditorialEntry(
        market=pick.market,
        theme=theme,
        editorial_copy=generate_editorial_copy(theme, pick, rng),
        theme_label=THEME_LABELS.get(theme, theme.upper()),
        theme_color=THEME_COLORS.get(theme, DEFAULT_THEME_COLOR),
        crowd_vote=pick.crowd_vote,
        gap=pick.gap,
        conviction=pick.conviction,
        crowd_says_yes=pick.crowd_says_yes,
        vote_count=pick.vote_count,
    )


def calculate_editorial(
    markets: Sequence[NormalizedMarket],
    votes: Mapping[str, VoteAggregate] | None = None,
    *,
    policy: EditorialPolicy = DEFAULT_POLICY,
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> EditorialThemes:
    """Rank ``markets`` into every editorial theme.

    ``votes`` maps market slug to its aggregate; markets without votes are
    simply absent. The crowd themes come back empty when there is no vote
    data at all. ``rng`` drives template selection, so passing a seeded
    ``random.Random`` makes the copy reproducible.
    """

    rng = rng or random.Random()
    votes = {slug: vote for slug, vote in (votes or {}).items() if vote.total > 0}

    picks: dict[str, list[ThemePick]] = {
        "bigMovers": find_big_movers(markets, policy),
        "debateFuel": find_debate_fuel(markets, policy),
        "sentimentGaps": find_sentiment_gaps(markets, votes, policy),
        "longshotWatch": find_longshot_watch(markets, policy),
        "crowdFavorites": find_crowd_favorites(markets, votes, policy),
        "volumeSurge": find_volume_surge(markets, policy),
        "fadingFast": find_fading_fast(markets, policy),
        "mostEngaged": find_most_engaged(markets, votes),
        "freshMarkets": find_fresh_markets(markets, policy, now=now),
    }
    themes = {theme: [enrich(theme, pick, rng) for pick in picks[theme]] for theme in THEME_ORDER}
    logger.debug(
        "Editorial computed over {} markets: {}",
        len(markets),
        {theme: len(entries) for theme, entries in themes.items()},
    )
    return themes


def active_themes(themes: Mapping[str, Sequence[EditorialEntry]]) -> list[str]:
    """Rotation themes that currently have at least one market, in rotation order."""

    return [slot.theme for slot in EDITORIAL_ROTATION if themes.get(slot.theme)]


def next_theme(current: str | None, themes: Mapping[str, Sequence[EditorialEntry]]) -> str | None:
    active = active_themes(themes)
    if not active:
        return None
    index = active.index(current) if current in active else -1
    return active[(index + 1) % len(active)]


def next_market(
    theme: str,
    current_index: int,
    themes: Mapping[str, Sequence[EditorialEntry]],
) -> tuple[EditorialEntry | None, int]:
    entries = themes.get(theme) or []
    if not entries:
        return None, 0
    index = (current_index + 1) % len(entries)
    return entries[index], index


__all__ = [
    "CROWD_DEPENDENT_THEMES",
    "EDITORIAL_ROTATION",
    "THEME_ORDER",
    "EditorialThemes",
    "RotationSlot",
    "active_themes",
    "calculate_editorial",
    "enrich",
    "next_market",
    "next_theme",
]
