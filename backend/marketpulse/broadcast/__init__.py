from .channel import CHANNEL_NAME, Envelope, LocalChannel
from .messages import (
    COMMAND_ADAPTER,
    AssignContent,
    Command,
    PinMarket,
    RequestState,
    SetFlipped,
    SetTheme,
    StateUpdate,
    UnpinMarket,
    ZoneVisibility,
    is_mutation,
    parse_command,
)
from .reducer import reduce
from .remote import RemoteStateStore
from .state import ZONE_IDS, BroadcastState, ZoneOverrides, ZoneState, default_state
from .sync import BroadcastSync, Role

__all__ = [
    "AssignContent",
    "BroadcastState",
    "BroadcastSync",
    "CHANNEL_NAME",
    "COMMAND_ADAPTER",
    "Command",
    "Envelope",
    "LocalChannel",
    "PinMarket",
    "RemoteStateStore",
    "RequestState",
    "Role",
    "SetFlipped",
    "SetTheme",
    "StateUpdate",
    "UnpinMarket",
    "ZONE_IDS",
    "ZoneOverrides",
    "ZoneState",
    "ZoneVisibility",
    "default_state",
    "is_mutation",
    "parse_command",
    "reduce",
]
