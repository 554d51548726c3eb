from __future__ import annotations

import random
from typing import Any

from .formatters import format_change, format_multiplier, format_price, format_volume
from .themes import ThemePick

EDITORIAL_COPY: dict[str, tuple[str, ...]] = {
    "bigMovers": (
        "The market is moving fast. When odds shift this hard, someone knows something.",
        "A swing this big doesn't happen by accident. The narrative just changed.",
        "Surging {direction} {change} in 24 hours. The market has spoken.",
        "Sharp movement: {outcome} odds shift {change}. Pay attention.",
        "{outcome} momentum building {direction}. This is the story.",
        "Big move alert: {change} in one day. The odds are shifting.",
        "Odds don't lie. This {change} move tells a story.",
        "Follow the money. It's moving {direction} fast.",
        "A {change} shift isn't random. Something changed.",
        "The market is repricing in real time. {change} today.",
        "Money talks, and right now it's heading {direction}.",
        "Rapid repricing underway. {change} in a single day.",
    ),
    "debateFuel": (
        "The market can't decide. Pick your side.",
        "A true coin flip. This is where debates get heated.",
        "Split down the middle at {price}. Everyone has an opinion.",
        "Too close to call. The perfect argument starter.",
        "Coin flip territory: {price}. Where do you stand?",
        "Neither side is backing down. {price} and holding.",
        "At {price}, this is anyone's game.",
        "The market can't make up its mind. Can you?",
        "Sitting at {price}. The definition of uncertainty.",
        "At these odds, your vote actually matters.",
        "At {price}, the market admits it doesn't know.",
        "The market is holding its breath at {price}.",
    ),
    "sentimentGaps": (
        "Fan optimism and the smart money don't agree. Who's right?",
        "Market says {marketPrice}, you say {crowdVote}. Let's settle this.",
        "{gap} gap between traders and fans. Massive disconnect.",
        "The money or the crowd? A {gap} split says it matters.",
        "The crowd sees it differently. {gap} differently, to be exact.",
        "A {gap} sentiment gap. That's not small.",
        "Professional money vs passionate fans: {gap} apart.",
        "Either the market is wrong or the fans are dreaming.",
        "Traders see {marketPrice}. Fans see {crowdVote}.",
        "Someone is about to be very right or very wrong.",
        "Market price and fan conviction sit {gap} apart.",
        "This {gap} disagreement will resolve one way.",
    ),
    "longshotWatch": (
        "The market says no way. Momentum says maybe.",
        "At {price}, this is a moonshot with upside.",
        "Longshot alert: {outcome} climbing quietly.",
        "{multiplier} potential payout if this hits. Worth a look.",
        "Dark horse gaining ground at {price}. Don't sleep on it.",
        "Underdog on the move. The odds are shifting.",
        "{price} odds but trending up. Something's happening.",
        "The dark horse is stirring. {outcome} on the move.",
        "At {multiplier} potential, the risk/reward is interesting.",
        "A {price} price tag with upward momentum.",
        "Don't count this one out. {outcome} is climbing.",
        "{multiplier} payout potential if lightning strikes.",
    ),
    "crowdFavorites": (
        "The fans have spoken, and they're not being subtle about it.",
        "The people have picked {outcome} at {conviction}.",
        "Overwhelming audience confidence: {conviction} agreement.",
        "Fan favorite at {conviction}. This is consensus.",
        "When {conviction} agree, that's not noise. That's signal.",
        "Crowd conviction at {conviction}. Hard to ignore.",
        "A {conviction} favorite. The audience has spoken.",
        "Overwhelming support for {outcome}. {conviction} strong.",
        "The audience vote is in: {conviction} for {outcome}.",
        "The fans are aligned. {conviction} aligned.",
        "Consensus building at {conviction}. The crowd knows.",
        "{conviction} fan support. That's decisive.",
    ),
    "volumeSurge": (
        "Money is pouring in. Something's got people's attention.",
        "{volume24h} traded in the last 24 hours. That's significant.",
        "Volume spike: {percentage}% of all-time volume today.",
        "Trading frenzy on this market. Volume exploding.",
        "The money is flooding in. {volume24h} and counting.",
        "{percentage}% of total volume in 24 hours. Something's up.",
        "Major inflows detected. {volume24h} in a day.",
        "Money is speaking. {volume24h} worth of opinions.",
        "Capital is voting with its feet. {volume24h} today.",
        "{volume24h} in 24 hours. The market is alive.",
        "Major market activity: a {percentage}% surge.",
        "Volume at {volume24h}. That's not normal.",
    ),
    "fadingFast": (
        "The odds are collapsing. Yesterday's favorite is today's afterthought.",
        "Fading: {outcome} drops {change}. The slide continues.",
        "Confidence crumbling, down {change} today.",
        "Losing support fast. {change} and falling.",
        "Sharp decline in progress. {outcome} in freefall.",
        "The market is abandoning this position. {change} drop.",
        "Support is evaporating. {change} decline today.",
        "The market lost faith. {change} in a day.",
        "From contender to afterthought: a {change} slide.",
        "The sell-off is brutal. {change} and dropping.",
        "Conviction is crumbling. {change} freefall.",
        "The bottom fell out. {change} today alone.",
    ),
    "mostEngaged": (
        "This market has everyone talking. And voting.",
        "{voteCount} votes and counting. Peak engagement.",
        "Your audience is watching this one closely.",
        "Most voted market today. {voteCount} opinions.",
        "Hot topic: {voteCount} votes. The people care.",
        "The audience can't stop voting. {voteCount} so far.",
        "{voteCount} votes. That's serious engagement.",
        "Everyone wants a say. {voteCount} votes cast.",
        "{voteCount} fans weighed in.",
        "The crowd is invested. {voteCount} votes deep.",
        "This market struck a nerve. {voteCount} votes.",
        "The audience is all in. {voteCount} votes.",
    ),
    "freshMarkets": (
        "New market just opened. Get in on the ground floor.",
        "Fresh odds available. The opening line is set.",
        "Just listed. Get in early before it moves.",
        "Brand new market. Opening odds are live.",
        "Fresh out of the gate at {price}.",
        "New listing alert. Initial odds are live.",
        "The ink is still wet on this one.",
        "Ground floor pricing on a new market.",
        "Just opened. The market is finding its level.",
        "New listing. Get in before price discovery.",
        "Fresh opportunity just hit the board.",
        "The market is new. The odds are soft.",
    ),
}

THEME_LABELS: dict[str, str] = {
    "bigMovers": "BIG MOVER",
    "debateFuel": "DEBATE FUEL",
    "sentimentGaps": "SENTIMENT GAP",
    "longshotWatch": "LONGSHOT WATCH",
    "crowdFavorites": "CROWD FAVORITE",
    "volumeSurge": "VOLUME SURGE",
    "fadingFast": "FADING FAST",
    "mostEngaged": "MOST ENGAGED",
    "freshMarkets": "FRESH MARKET",
}

THEME_COLORS: dict[str, str] = {
    "bigMovers": "#ff6b2b",
    "debateFuel": "#a29bfe",
    "sentimentGaps": "#00b4ff",
    "longshotWatch": "#f1c40f",
    "crowdFavorites": "#e056fd",
    "volumeSurge": "#00cec9",
    "fadingFast": "#ff4757",
    "mostEngaged": "#fd79a8",
    "freshMarkets": "#00d68f",
}

DEFAULT_THEME_COLOR = "#FFFFFF"


def copy_values(pick: ThemePick) -> dict[str, Any]:
    """Placeholder substitutions for one selected market."""

    market = pick.market
    primary = market.outcomes[0] if market.outcomes else None
    price = primary.price if primary else 0.0
    change = primary.change24h if primary else 0.0
    percentage = round(market.volume24h / market.volume * 100) if market.volume > 0 else 0
    return {
        "outcome": (primary.name if primary else None) or market.question,
        "price": format_price(price),
        "change": format_change(change),
        "direction": "up" if change >= 0 else "down",
        "multiplier": format_multiplier(price),
        "volume24h": format_volume(market.volume24h),
        "percentage": percentage,
        "marketPrice": format_price(price),
        "crowdVote": format_price(pick.crowd_vote) if pick.crowd_vote is not None else "N/A",
        "gap": format_price(pick.gap) if pick.gap is not None else "N/A",
        "conviction": format_price(pick.conviction) if pick.conviction is not None else "N/A",
        "voteCount": pick.vote_count or 0,
    }


def generate_editorial_copy(theme: str, pick: ThemePick, rng: random.Random) -> str:
    templates = EDITORIAL_COPY.get(theme)
    if not templates:
        return ""
    return rng.choice(templates).format_map(copy_values(pick))


__all__ = [
    "DEFAULT_THEME_COLOR",
    "EDITORIAL_COPY",
    "THEME_COLORS",
    "THEME_LABELS",
    "copy_values",
    "generate_editorial_copy",
]
