from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

import pytest

from marketpulse.domain import VoteAggregate
from marketpulse.editorial import (
    THEME_LABELS,
    THEME_ORDER,
    EditorialPolicy,
    active_themes,
    calculate_editorial,
    next_market,
    next_theme,
)
from marketpulse.editorial.formatters import format_change, format_multiplier, format_price, format_volume
from marketpulse.editorial.themes import (
    find_crowd_favorites,
    find_debate_fuel,
    find_fresh_markets,
    find_most_engaged,
    find_sentiment_gaps,
    find_volume_surge,
)

NOW = datetime(2025, 1, 15, tzinfo=timezone.utc)


def _slugs(entries) -> list[str]:
    return [entry.market.slug for entry in entries]


def test_scenario_assigns_markets_to_expected_themes(market_factory):
    markets = [
        market_factory("coin-flip", price=0.50, change24h=0.0),
        market_factory("longshot", price=0.10, change24h=0.01),
        market_factory("favorite", price=0.90, change24h=-0.03),
    ]

    themes = calculate_editorial(markets, rng=random.Random(1), now=NOW)

    assert list(themes) == list(THEME_ORDER)
    assert "coin-flip" in _slugs(themes["debateFuel"])
    assert _slugs(themes["longshotWatch"]) == ["longshot"]
    assert _slugs(themes["fadingFast"]) == ["favorite"]
    assert _slugs(themes["bigMovers"]) == ["favorite"]
    for crowd_theme in ("sentimentGaps", "crowdFavorites", "mostEngaged"):
        assert themes[crowd_theme] == []


@pytest.mark.parametrize(("price", "included"), [(0.35, True), (0.65, True), (0.349, False), (0.651, False)])
def test_debate_fuel_boundaries(market_factory, price, included):
    picks = find_debate_fuel([market_factory("m", price=price)])
    assert bool(picks) is included


def test_entries_carry_copy_label_and_color(market_factory):
    themes = calculate_editorial([market_factory("m", price=0.5)], rng=random.Random(3), now=NOW)

    (entry,) = themes["debateFuel"]
    assert entry.theme == "debateFuel"
    assert entry.theme_label == THEME_LABELS["debateFuel"]
    assert entry.theme_color.startswith("#")
    assert entry.editorial_copy
    assert "{" not in entry.editorial_copy


def test_copy_is_deterministic_for_a_seed(market_factory):
    markets = [market_factory(f"m{i}", price=0.4 + i / 100, change24h=0.05) for i in range(5)]

    first = calculate_editorial(markets, rng=random.Random(42), now=NOW)
    second = calculate_editorial(markets, rng=random.Random(42), now=NOW)

    assert [e.editorial_copy for e in first["bigMovers"]] == [e.editorial_copy for e in second["bigMovers"]]
    assert len(first["bigMovers"]) == 5
    assert all(entry.editorial_copy for entry in first["bigMovers"])


def test_sentiment_gaps_and_crowd_favorites(market_factory):
    markets = [
        market_factory("gap", price=0.30),
        market_factory("aligned", price=0.52),
        market_factory("consensus", price=0.60),
    ]
    votes = {
        "gap": VoteAggregate.from_counts(yes=8, no=2),
        "aligned": VoteAggregate.from_counts(yes=1, no=1),
        "consensus": VoteAggregate.from_counts(yes=1, no=19),
    }

    gaps = find_sentiment_gaps(markets, votes)
    favorites = find_crowd_favorites(markets, votes)

    assert [pick.market.slug for pick in gaps] == ["consensus", "gap"]
    assert gaps[0].gap == pytest.approx(0.55)
    assert gaps[1].gap == pytest.approx(0.5)
    assert gaps[1].crowd_vote == pytest.approx(0.8)
    assert [pick.market.slug for pick in favorites] == ["consensus"]
    assert favorites[0].conviction == pytest.approx(0.95)
    assert favorites[0].crowd_says_yes is False


def test_policy_thresholds_are_configurable(market_factory):
    markets = [market_factory("m", price=0.50)]
    votes = {"m": VoteAggregate.from_counts(yes=53, no=47)}

    assert find_sentiment_gaps(markets, votes) == []
    assert len(find_sentiment_gaps(markets, votes, EditorialPolicy(sentiment_gap_threshold=2))) == 1


def test_most_engaged_ranks_by_votes_then_volume(market_factory):
    markets = [
        market_factory("quiet", volume=10_000),
        market_factory("busy", volume=100),
        market_factory("busy-rich", volume=1_000),
    ]
    votes = {
        "quiet": VoteAggregate.from_counts(1, 0),
        "busy": VoteAggregate.from_counts(3, 2),
        "busy-rich": VoteAggregate.from_counts(4, 1),
    }

    picks = find_most_engaged(markets, votes)

    assert [pick.market.slug for pick in picks] == ["busy-rich", "busy", "quiet"]
    assert picks[0].vote_count == 5


def test_volume_surge_and_fresh_markets(market_factory):
    markets = [
        market_factory("surging", volume=100_000, volume24h=20_000, created_at=NOW - timedelta(hours=3)),
        market_factory("steady", volume=1_000_000, volume24h=20_000, created_at=NOW - timedelta(days=30)),
    ]

    assert [pick.market.slug for pick in find_volume_surge(markets)] == ["surging"]
    assert [pick.market.slug for pick in find_fresh_markets(markets, now=NOW)] == ["surging"]


def test_zero_vote_aggregates_are_ignored(market_factory):
    markets = [market_factory("m", price=0.2)]
    themes = calculate_editorial(markets, {"m": VoteAggregate()}, rng=random.Random(0), now=NOW)
    assert themes["mostEngaged"] == []
    assert themes["sentimentGaps"] == []


def test_rotation_helpers(market_factory):
    markets = [
        market_factory("a", price=0.5, change24h=0.1),
        market_factory("b", price=0.45, change24h=-0.05),
    ]
    themes = calculate_editorial(markets, rng=random.Random(0), now=NOW)

    active = active_themes(themes)
    assert active == ["bigMovers", "debateFuel", "fadingFast"]
    assert next_theme(None, themes) == "bigMovers"
    assert next_theme("fadingFast", themes) == "bigMovers"
    assert next_theme("debateFuel", themes) == "fadingFast"

    entry, index = next_market("bigMovers", 0, themes)
    assert index == 1
    assert entry is themes["bigMovers"][1]
    assert next_market("volumeSurge", 3, themes) == (None, 0)


def test_formatters():
    assert format_price(0.42) == "42%"
    assert format_price(0.325) == "32.5%"
    assert format_change(0.05).startswith("+")
    assert format_volume(1_500_000) == "$1.5M"
    assert format_multiplier(0.1) == "10.0x"
