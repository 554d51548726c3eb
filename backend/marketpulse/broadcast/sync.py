"""Controller/viewer synchronisation over the local channel and the remote store."""

from __future__ import annotations

import asyncio
from enum import Enum

from loguru import logger

from marketpulse.errors import StoreUnavailableError

from .channel import ChannelPort, Envelope, LocalChannel
from .messages import Command, RequestState, StateUpdate, is_mutation
from .reducer import reduce
from .remote import Marker, RemoteStateStore
from .state import BroadcastState, ZoneOverrides, default_state


class Role(str, Enum):
    CONTROLLER = "controller"
    VIEWER = "viewer"


class BroadcastSync:
    """Owns one copy of the broadcast document.

    Local channel messages, remote store updates and commands submitted by the
    owner all land in a single inbox drained by one dispatch loop, so the
    document is only ever replaced from that loop. Remote documents replace
    the local copy verbatim. Controllers are the single writer of the remote
    row and therefore do not watch it.
    """

    def __init__(
        self,
        role: Role | str,
        channel: LocalChannel,
        remote: RemoteStateStore | None = None,
        *,
        overrides: ZoneOverrides | None = None,
        initial: BroadcastState | None = None,
    ) -> None:
        self.role = Role(role)
        self.overrides = overrides or ZoneOverrides()
        self._channel = channel
        self._remote = remote
        self._inbox: asyncio.Queue[Envelope] = asyncio.Queue()
        self._port: ChannelPort | None = None
        self._tasks: list[asyncio.Task] = []
        self._marker: Marker | None = None
        self.peer_seen = False
        self._replace(initial or default_state())

    @property
    def raw_state(self) -> BroadcastState:
        return self._state

    @property
    def state(self) -> BroadcastState:
        return self._view

    @property
    def running(self) -> bool:
        return self._port is not None

    def _replace(self, state: BroadcastState) -> None:
        self._state = state
        self._view = self.overrides.apply(state)

    async def start(self) -> None:
        if self.running:
            return
        self._port = self._channel.connect(self._inbox)

        if self._remote is not None:
            self._marker, remote_state = await self._remote.poll_once()
            if remote_state is not None:
                self._replace(remote_state)

        self._tasks.append(asyncio.create_task(self._dispatch_loop(), name=f"broadcast-{self.role.value}"))
        if self._remote is not None and self.role is Role.VIEWER:
            self._tasks.append(asyncio.create_task(self._watch_remote(self._remote), name="broadcast-remote-watch"))

        if self.role is Role.VIEWER and not self.peer_seen:
            self._port.publish(RequestState())
        logger.info("Broadcast {} started at revision {}", self.role.value, self._state.revision)

    async def stop(self) -> None:
        if self._port is not None:
            self._port.close()
            self._port = None
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Broadcast {} stopped", self.role.value)

    async def submit(self, command: Command) -> BroadcastState:
        """Apply a locally issued command and return the resulting document."""

        if not self.running:
            raise RuntimeError("Broadcast sync is not running")
        reply: asyncio.Future[BroadcastState] = asyncio.get_running_loop().create_future()
        self._inbox.put_nowait(Envelope(source="self", command=command, reply=reply))
        return await reply

    async def settle(self) -> None:
        """Wait until every queued inbox item has been handled."""

        await self._inbox.join()

    async def _watch_remote(self, remote: RemoteStateStore) -> None:
        async for state in remote.watch(self._marker):
            self._inbox.put_nowait(Envelope(source="remote", state=state))

    async def _dispatch_loop(self) -> None:
        while True:
            envelope = await self._inbox.get()
            try:
                await self._handle(envelope)
            except Exception as exc:
                logger.exception("Broadcast {} failed to handle {}", self.role.value, envelope)
                if envelope.reply is not None and not envelope.reply.done():
                    envelope.reply.set_exception(exc)
            else:
                if envelope.reply is not None and not envelope.reply.done():
                    envelope.reply.set_result(self._state)
            finally:
                self._inbox.task_done()

    async def _handle(self, envelope: Envelope) -> None:
        if envelope.source == "remote":
            if envelope.state is None:
                logger.warning("Dropping remote broadcast envelope without a document")
                return
            self._replace(envelope.state)
            logger.debug("Adopted remote broadcast revision {}", envelope.state.revision)
            return

        command = envelope.command
        if command is None:
            logger.warning("Dropping {} broadcast envelope without a command", envelope.source)
            return

        if envelope.source == "local":
            self.peer_seen = True
            if isinstance(command, RequestState):
                if self.role is Role.CONTROLLER and self._port is not None:
                    self._port.publish(StateUpdate(state=self._state))
                return
            if isinstance(command, StateUpdate) and command.state.revision < self._state.revision:
                logger.debug(
                    "Ignoring stale state update {} < {}", command.state.revision, self._state.revision
                )
                return
            self._replace(reduce(self._state, command))
            return

        updated = reduce(self._state, command)
        self._replace(updated)
        if self._port is not None:
            self._port.publish(command)
        if is_mutation(command) and self.role is Role.CONTROLLER and self._remote is not None:
            try:
                await self._remote.save(updated)
            except StoreUnavailableError as exc:
                logger.warning("Broadcast state not persisted: {}", exc)


__all__ = ["BroadcastSync", "Role"]
