"""Outcome naming heuristics.

Providers frequently publish templated outcome labels ("Player K", "Other",
"Person 50%") in place of real names. ``classify_name`` walks an ordered rule
table and returns the verdict of the first matching rule, so new patterns can
be added here without touching call sites.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class NameVerdict(str, Enum):
    NAME = "name"
    PLACEHOLDER = "placeholder"


@dataclass(slots=True, frozen=True)
class NameRule:
    pattern: re.Pattern[str]
    verdict: NameVerdict
    label: str


_ROLE = r"(?:player|coach|team|candidate|option|person|individual|nominee|contender)"


def _rule(pattern: str, verdict: NameVerdict, label: str, flags: int = re.IGNORECASE) -> NameRule:
    return NameRule(re.compile(pattern, flags), verdict, label)


NAME_RULES: tuple[NameRule, ...] = (
    # Short labels that are real names.
    _rule(r"^(?:no|uk|us|eu|un|ai)$", NameVerdict.NAME, "short-allowlist"),
    _rule(r"^[A-Z]{1,2}$", NameVerdict.PLACEHOLDER, "letters", flags=0),
    _rule(r"^\d+%?$", NameVerdict.PLACEHOLDER, "number"),
    _rule(
        r"^(?:other|tbd|tba|unknown|n/a|none|null|cancell?ed)$",
        NameVerdict.PLACEHOLDER,
        "generic",
    ),
    _rule(r"^any\s+other", NameVerdict.PLACEHOLDER, "any-other"),
    _rule(r"^someone\s+else$", NameVerdict.PLACEHOLDER, "someone-else"),
    _rule(r"^another\s+(?:person|player|coach|team|candidate)", NameVerdict.PLACEHOLDER, "another"),
    _rule(r"^(?:no\s+one|nobody|none\s+of)", NameVerdict.PLACEHOLDER, "nobody"),
    _rule(r"^(?:the\s+)?field$", NameVerdict.PLACEHOLDER, "field"),
    _rule(r"^the\s+(?:team|player|person|coach|candidate)\s+that", NameVerdict.PLACEHOLDER, "the-x-that"),
    _rule(
        r"^a\s+(?:team|player|person|coach|candidate)\s+(?:that|who|from)",
        NameVerdict.PLACEHOLDER,
        "a-x-who",
    ),
    _rule(r"^(?:team|player|person)\s+(?:from|in|with)\s+", NameVerdict.PLACEHOLDER, "x-from"),
    # "Person A", "Player 50%", "Candidate #1", "Person A1", "Person 1A"
    _rule(rf"^{_ROLE}\s+[a-z]{{1,3}}$", NameVerdict.PLACEHOLDER, "role-letters"),
    _rule(rf"^{_ROLE}\s+#?\d+%?$", NameVerdict.PLACEHOLDER, "role-number"),
    _rule(rf"^{_ROLE}\s+(?:[a-z]\d+|\d+[a-z])$", NameVerdict.PLACEHOLDER, "role-mixed"),
    _rule(r"^.{1,2}$", NameVerdict.PLACEHOLDER, "too-short"),
)


def classify_name(name: str | None) -> NameVerdict:
    if not name or not name.strip():
        return NameVerdict.PLACEHOLDER
    trimmed = name.strip()
    for rule in NAME_RULES:
        if rule.pattern.search(trimmed):
            return rule.verdict
    return NameVerdict.NAME


def is_placeholder_name(name: str | None) -> bool:
    return classify_name(name) is NameVerdict.PLACEHOLDER


# Tried in order; the first capture that looks like a real name wins.
QUESTION_NAME_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^Will (.+?) win", re.IGNORECASE),
    re.compile(r"^Will (.+?) be ", re.IGNORECASE),
    re.compile(r"^(.+?) to win", re.IGNORECASE),
    re.compile(r"^(.+?) - "),
    re.compile(r"winner[:\s]+(.+?)(?:\?|$)", re.IGNORECASE),
)

EVENT_TITLE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"Will (.+) win", re.IGNORECASE),
    re.compile(r"Will (.+) be", re.IGNORECASE),
    re.compile(r"(.+) winner", re.IGNORECASE),
)


def extract_name_from_question(question: str | None) -> str | None:
    if not question:
        return None
    for pattern in QUESTION_NAME_PATTERNS:
        match = pattern.search(question)
        if not match or not match.group(1):
            continue
        candidate = match.group(1).strip()
        if 2 < len(candidate) < 50 and not is_placeholder_name(candidate):
            return candidate
    return None


def extract_event_title(question: str) -> str:
    for pattern in EVENT_TITLE_PATTERNS:
        match = pattern.search(question)
        if match:
            return match.group(1).strip()
    return question[:50]


def resolve_outcome_name(
    *,
    short_name: str | None,
    question: str | None,
    label: str | None,
) -> str:
    """Pick a display name: short-name field, then question text, then raw label."""

    if short_name and not is_placeholder_name(short_name):
        return short_name.strip()
    if label and not is_placeholder_name(label) and not short_name:
        return label.strip()

    extracted = extract_name_from_question(question)
    if extracted:
        return extracted

    if short_name:
        # Left as-is so event grouping can drop it.
        return short_name.strip()
    if label:
        return label.strip()
    return question or "Unknown"


__all__ = [
    "NAME_RULES",
    "NameRule",
    "NameVerdict",
    "classify_name",
    "extract_event_title",
    "extract_name_from_question",
    "is_placeholder_name",
    "resolve_outcome_name",
]
