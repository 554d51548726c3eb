"""Editorial theme ranking and narrative copy."""

from .copy import EDITORIAL_COPY, THEME_COLORS, THEME_LABELS, generate_editorial_copy
from .engine import (
    CROWD_DEPENDENT_THEMES,
    EDITORIAL_ROTATION,
    THEME_ORDER,
    EditorialThemes,
    RotationSlot,
    active_themes,
    calculate_editorial,
    next_market,
    next_theme,
)
from .themes import DEFAULT_POLICY, EditorialPolicy, ThemePick

__all__ = [
    "CROWD_DEPENDENT_THEMES",
    "DEFAULT_POLICY",
    "EDITORIAL_COPY",
    "EDITORIAL_ROTATION",
    "THEME_COLORS",
    "THEME_LABELS",
    "THEME_ORDER",
    "EditorialPolicy",
    "EditorialThemes",
    "RotationSlot",
    "ThemePick",
    "active_themes",
    "calculate_editorial",
    "generate_editorial_copy",
    "next_market",
    "next_theme",
]
