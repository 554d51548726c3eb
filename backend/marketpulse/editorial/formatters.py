"""Number formatting used inside editorial copy."""

from __future__ import annotations


def format_price(price: float) -> str:
    """0.32 -> "32%", 0.325 -> "32.5%"."""

    text = f"{price * 100:.1f}"
    if text.endswith(".0"):
        text = text[:-2]
    return f"{text}%"


def format_change(change: float) -> str:
    text = f"{change * 100:.1f}%"
    return f"+{text}" if change >= 0 else text


def format_volume(volume: float) -> str:
    if volume >= 1_000_000:
        return f"${volume / 1_000_000:.1f}M"
    if volume >= 1_000:
        return f"${volume / 1_000:.0f}K"
    return f"${max(volume, 0):.0f}"


def format_multiplier(price: float) -> str:
    if price <= 0:
        return "∞"
    return f"{1 / price:.1f}x"


__all__ = ["format_change", "format_multiplier", "format_price", "format_volume"]
