"""Durable single-row store for the broadcast document with polled change feed."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from datetime import datetime

import pydantic
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from marketpulse.db import session_scope
from marketpulse.errors import StoreUnavailableError
from marketpulse.repositories import BroadcastStateRepository
from marketpulse.repositories.broadcast_repository import DEFAULT_ROW_ID

from .state import BroadcastState

Marker = tuple[int, datetime | None]


class RemoteStateStore:
    """Blocking SQLAlchemy work runs in a worker thread; callers stay on the loop."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        row_id: str = DEFAULT_ROW_ID,
        poll_interval: float = 2.0,
    ) -> None:
        self._session_factory = session_factory
        self.row_id = row_id
        self.poll_interval = poll_interval

    def _read(self) -> tuple[Marker, BroadcastState] | None:
        with session_scope(self._session_factory) as session:
            record = BroadcastStateRepository(session, row_id=self.row_id).get()
            if record is None:
                return None
            marker = (record.revision, record.updated_at)
            document = dict(record.state)
        try:
            return marker, BroadcastState.from_document(document)
        except pydantic.ValidationError as exc:
            logger.warning("Ignoring malformed broadcast document {}: {}", self.row_id, exc)
            return None

    def _write(self, state: BroadcastState) -> None:
        with session_scope(self._session_factory) as session:
            BroadcastStateRepository(session, row_id=self.row_id).save(state.to_document(), state.revision)

    async def load(self) -> BroadcastState | None:
        try:
            result = await asyncio.to_thread(self._read)
        except SQLAlchemyError as exc:
            logger.warning("Failed to load broadcast state: {}", exc)
            return None
        return result[1] if result else None

    async def save(self, state: BroadcastState) -> None:
        try:
            await asyncio.to_thread(self._write, state)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("Broadcast state store unavailable") from exc
        logger.debug("Saved broadcast state revision {}", state.revision)

    async def poll_once(self, marker: Marker | None = None) -> tuple[Marker | None, BroadcastState | None]:
        """Return the new marker and document when the row changed since ``marker``."""

        try:
            result = await asyncio.to_thread(self._read)
        except SQLAlchemyError as exc:
            logger.warning("Failed to poll broadcast state: {}", exc)
            return marker, None
        if result is None:
            return marker, None
        current, state = result
        if current == marker:
            return marker, None
        return current, state

    async def watch(self, marker: Marker | None = None) -> AsyncIterator[BroadcastState]:
        while True:
            marker, state = await self.poll_once(marker)
            if state is not None:
                yield state
            await asyncio.sleep(self.poll_interval)


__all__ = ["Marker", "RemoteStateStore"]
