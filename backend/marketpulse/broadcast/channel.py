"""In-process publish/subscribe channel shared by a controller and its viewers."""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from typing import Literal

from loguru import logger

from .messages import Command
from .state import BroadcastState

CHANNEL_NAME = "market-pulse-control"

Source = Literal["self", "local", "remote"]


@dataclass(slots=True)
class Envelope:
    """One inbox item. ``command`` for self/local sources, ``state`` for remote ones."""

    source: Source
    command: Command | None = None
    state: BroadcastState | None = None
    reply: asyncio.Future | None = field(default=None, repr=False)


class ChannelPort:
    """A subscriber's handle on the channel."""

    def __init__(self, channel: "LocalChannel", port_id: int, inbox: asyncio.Queue[Envelope]) -> None:
        self._channel = channel
        self.port_id = port_id
        self.inbox = inbox
        self.closed = False

    def publish(self, command: Command) -> int:
        if self.closed:
            return 0
        return self._channel._deliver(self.port_id, command)

    def close(self) -> None:
        if not self.closed:
            self._channel._disconnect(self.port_id)
            self.closed = True


class LocalChannel:
    def __init__(self, name: str = CHANNEL_NAME) -> None:
        self.name = name
        self._ports: dict[int, ChannelPort] = {}
        self._ids = itertools.count(1)

    def connect(self, inbox: asyncio.Queue[Envelope]) -> ChannelPort:
        port = ChannelPort(self, next(self._ids), inbox)
        self._ports[port.port_id] = port
        logger.debug("Port {} joined channel {}", port.port_id, self.name)
        return port

    @property
    def subscriber_count(self) -> int:
        return len(self._ports)

    def _disconnect(self, port_id: int) -> None:
        self._ports.pop(port_id, None)
        logger.debug("Port {} left channel {}", port_id, self.name)

    def _deliver(self, sender_id: int, command: Command) -> int:
        delivered = 0
        for port_id, port in list(self._ports.items()):
            if port_id == sender_id:
                continue
            port.inbox.put_nowait(Envelope(source="local", command=command))
            delivered += 1
        return delivered


__all__ = ["CHANNEL_NAME", "ChannelPort", "Envelope", "LocalChannel", "Source"]
