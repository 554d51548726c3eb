"""The shared broadcast state document and viewer-side zone overrides."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ZONE_IDS: tuple[str, ...] = ("header", "main", "sidebar", "lowerThird", "bottomCorner", "ticker")
DEFAULT_THEME = "default"


class _Document(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class ZoneState(_Document):
    visible: bool = True
    content: dict[str, Any] | None = None


def default_zones() -> dict[str, ZoneState]:
    zones = {zone_id: ZoneState() for zone_id in ZONE_IDS}
    zones["main"] = ZoneState(content={"type": "featuredLayout"})
    return zones


class BroadcastState(_Document):
    zones: dict[str, ZoneState] = Field(default_factory=default_zones)
    theme: str = DEFAULT_THEME
    flipped: bool = False
    pinned_markets: tuple[str, ...] = ()
    revision: int = 0

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "BroadcastState":
        return cls.model_validate(document)


def default_state(theme: str = DEFAULT_THEME) -> BroadcastState:
    return BroadcastState(theme=theme)


def _split_zone_list(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(slots=True, frozen=True)
class ZoneOverrides:
    """Explicit show/hide zone lists taken from a viewer's query string.

    Applied to a copy of the state after every replacement, hide first and
    then show, so a zone named in both lists ends up visible. Unknown zone ids
    are ignored and overrides are never written back to the shared document.
    """

    show: tuple[str, ...] = ()
    hide: tuple[str, ...] = ()

    @classmethod
    def parse(cls, show: str | None = None, hide: str | None = None) -> "ZoneOverrides":
        return cls(show=_split_zone_list(show), hide=_split_zone_list(hide))

    def __bool__(self) -> bool:
        return bool(self.show or self.hide)

    def apply(self, state: BroadcastState) -> BroadcastState:
        if not self:
            return state
        zones = dict(state.zones)
        for zone_id in self.hide:
            if zone_id in zones:
                zones[zone_id] = zones[zone_id].model_copy(update={"visible": False})
        for zone_id in self.show:
            if zone_id in zones:
                zones[zone_id] = zones[zone_id].model_copy(update={"visible": True})
        return state.model_copy(update={"zones": zones})


__all__ = [
    "BroadcastState",
    "DEFAULT_THEME",
    "ZONE_IDS",
    "ZoneOverrides",
    "ZoneState",
    "default_state",
    "default_zones",
]
