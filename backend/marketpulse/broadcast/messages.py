"""Commands exchanged between the controller and viewers, tagged on ``type``."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from .state import BroadcastState


class _Command(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    def to_message(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ZoneVisibility(_Command):
    type: Literal["ZONE_VISIBILITY"] = "ZONE_VISIBILITY"
    zone: str
    visible: bool


class AssignContent(_Command):
    type: Literal["ASSIGN_CONTENT"] = "ASSIGN_CONTENT"
    zone: str
    content: dict[str, Any] | None = None


class SetTheme(_Command):
    type: Literal["SET_THEME"] = "SET_THEME"
    theme_id: str


class SetFlipped(_Command):
    type: Literal["SET_FLIPPED"] = "SET_FLIPPED"
    flipped: bool


class PinMarket(_Command):
    type: Literal["PIN_MARKET"] = "PIN_MARKET"
    slug: str


class UnpinMarket(_Command):
    type: Literal["UNPIN_MARKET"] = "UNPIN_MARKET"
    slug: str


class RequestState(_Command):
    type: Literal["REQUEST_STATE"] = "REQUEST_STATE"


class StateUpdate(_Command):
    type: Literal["STATE_UPDATE"] = "STATE_UPDATE"
    state: BroadcastState


Command = Annotated[
    Union[
        ZoneVisibility,
        AssignContent,
        SetTheme,
        SetFlipped,
        PinMarket,
        UnpinMarket,
        RequestState,
        StateUpdate,
    ],
    Field(discriminator="type"),
]

MutationCommand = Union[ZoneVisibility, AssignContent, SetTheme, SetFlipped, PinMarket, UnpinMarket]
MUTATION_TYPES = (ZoneVisibility, AssignContent, SetTheme, SetFlipped, PinMarket, UnpinMarket)

COMMAND_ADAPTER: TypeAdapter[Command] = TypeAdapter(Command)


def parse_command(payload: dict[str, Any]) -> Command:
    """Validate a wire message; raises ``pydantic.ValidationError`` on unknown types."""

    return COMMAND_ADAPTER.validate_python(payload)


def is_mutation(command: Command) -> bool:
    return isinstance(command, MUTATION_TYPES)


__all__ = [
    "AssignContent",
    "COMMAND_ADAPTER",
    "Command",
    "MUTATION_TYPES",
    "MutationCommand",
    "PinMarket",
    "RequestState",
    "SetFlipped",
    "SetTheme",
    "StateUpdate",
    "UnpinMarket",
    "ZoneVisibility",
    "is_mutation",
    "parse_command",
]
