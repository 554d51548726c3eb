"""TTL caches with stale-while-error fallback and single-flight refreshes."""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generic, Hashable, TypeVar

from loguru import logger
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from marketpulse.domain import NormalizedMarket
from marketpulse.errors import UpstreamError

T = TypeVar("T")

Clock = Callable[[], float]


@dataclass(slots=True, frozen=True)
class CacheEntry(Generic[T]):
    data: T
    timestamp: float


class SnapshotStore:
    """Durable JSON copy of the filtered market cache: ``{data, timestamp}``."""

    _adapter = TypeAdapter(list[NormalizedMarket])

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> CacheEntry[list[NormalizedMarket]] | None:
        if not self.path.exists():
            logger.info("No market snapshot at {}, starting cold", self.path)
            return None
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            data = self._adapter.validate_python(payload["data"])
            timestamp = float(payload["timestamp"])
        except (OSError, ValueError, KeyError, TypeError, PydanticValidationError) as exc:
            logger.warning("Ignoring unreadable market snapshot {}: {}", self.path, exc)
            return None
        logger.info(
            "Loaded {} markets from snapshot (age: {}s)",
            len(data),
            round(time.time() - timestamp),
        )
        return CacheEntry(data=data, timestamp=timestamp)

    def save(self, entry: CacheEntry[list[NormalizedMarket]]) -> None:
        payload = {
            "data": self._adapter.dump_python(entry.data, mode="json"),
            "timestamp": entry.timestamp,
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".snapshot-", suffix=".json")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            logger.warning("Failed to write market snapshot {}: {}", self.path, exc)
            return
        logger.info("Market snapshot saved to {}", self.path)


class ResilientCache(Generic[T]):
    """Keyed TTL cache wrapped around an upstream loader.

    Fresh entries are served without calling the loader. Expired or missing
    entries trigger one shared refresh per key; every concurrent caller awaits
    the same result. When the refresh raises ``UpstreamError`` any existing
    entry is served instead, and the error only propagates on a cold cache.
    """

    def __init__(
        self,
        name: str,
        ttl_seconds: float,
        *,
        clock: Clock = time.time,
        on_store: Callable[[Hashable, CacheEntry[T]], None] | None = None,
    ) -> None:
        self.name = name
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._on_store = on_store
        self._entries: dict[Hashable, CacheEntry[T]] = {}
        self._inflight: dict[Hashable, asyncio.Future[T]] = {}

    def peek(self, key: Hashable) -> CacheEntry[T] | None:
        return self._entries.get(key)

    def seed(self, key: Hashable, entry: CacheEntry[T]) -> None:
        self._entries[key] = entry

    def age(self, key: Hashable) -> float | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        return self._clock() - entry.timestamp

    def is_fresh(self, key: Hashable) -> bool:
        age = self.age(key)
        return age is not None and age < self.ttl_seconds

    async def get(self, key: Hashable, loader: Callable[[], Awaitable[T]]) -> T:
        entry = self._entries.get(key)
        if entry is not None and self._clock() - entry.timestamp < self.ttl_seconds:
            return entry.data

        future = self._inflight.get(key)
        if future is None:
            future = asyncio.ensure_future(self._refresh(key, loader))
            self._inflight[key] = future
            future.add_done_callback(lambda done, key=key: self._clear_inflight(key, done))
        # Shielded so a cancelled caller does not abort the shared refresh.
        return await asyncio.shield(future)

    def _clear_inflight(self, key: Hashable, done: asyncio.Future[T]) -> None:
        if self._inflight.get(key) is done:
            del self._inflight[key]
        if not done.cancelled():
            # Marks the exception retrieved when every waiter was cancelled.
            done.exception()

    async def _refresh(self, key: Hashable, loader: Callable[[], Awaitable[T]]) -> T:
        try:
            data = await loader()
        except UpstreamError as exc:
            stale = self._entries.get(key)
            if stale is None:
                logger.error("{} cache cold and upstream failed for {}: {}", self.name, key, exc)
                raise
            logger.warning(
                "{} refresh failed for {} ({}); serving stale entry aged {}s",
                self.name,
                key,
                exc,
                round(self._clock() - stale.timestamp),
            )
            return stale.data

        entry = CacheEntry(data=data, timestamp=self._clock())
        self._entries[key] = entry
        logger.info("{} cache refreshed for {}", self.name, key)
        if self._on_store is not None:
            # Snapshot writes are blocking file I/O.
            await asyncio.to_thread(self._on_store, key, entry)
        return data

    def stats(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "ttlSeconds": self.ttl_seconds,
            "entries": len(self._entries),
            "refreshing": len(self._inflight),
        }


__all__ = ["CacheEntry", "Clock", "ResilientCache", "SnapshotStore"]
