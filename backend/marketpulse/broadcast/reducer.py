"""Pure state transitions for the broadcast document."""

from __future__ import annotations

from .messages import (
    AssignContent,
    Command,
    PinMarket,
    RequestState,
    SetFlipped,
    SetTheme,
    StateUpdate,
    UnpinMarket,
    ZoneVisibility,
)
from .state import BroadcastState, ZoneState


def _with_zone(state: BroadcastState, zone_id: str, **changes: object) -> dict[str, ZoneState]:
    zones = dict(state.zones)
    zones[zone_id] = zones.get(zone_id, ZoneState()).model_copy(update=changes)
    return zones


def reduce(state: BroadcastState, command: Command) -> BroadcastState:
    """Return the state that results from applying ``command``.

    Mutations bump ``revision`` by one. ``REQUEST_STATE`` is a no-op and a
    ``STATE_UPDATE`` carrying an older revision than ``state`` is ignored.
    """

    if isinstance(command, RequestState):
        return state
    if isinstance(command, StateUpdate):
        if command.state.revision < state.revision:
            return state
        return command.state

    if isinstance(command, ZoneVisibility):
        update: dict[str, object] = {"zones": _with_zone(state, command.zone, visible=command.visible)}
    elif isinstance(command, AssignContent):
        update = {"zones": _with_zone(state, command.zone, content=command.content)}
    elif isinstance(command, SetTheme):
        update = {"theme": command.theme_id}
    elif isinstance(command, SetFlipped):
        update = {"flipped": command.flipped}
    elif isinstance(command, PinMarket):
        if command.slug in state.pinned_markets:
            update = {}
        else:
            update = {"pinned_markets": state.pinned_markets + (command.slug,)}
    elif isinstance(command, UnpinMarket):
        update = {"pinned_markets": tuple(slug for slug in state.pinned_markets if slug != command.slug)}
    else:  # pragma: no cover - the union is closed
        raise TypeError(f"Unsupported broadcast command: {command!r}")

    update["revision"] = state.revision + 1
    return state.model_copy(update=update)


__all__ = ["reduce"]
