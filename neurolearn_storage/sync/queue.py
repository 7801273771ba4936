"""
Durable sync queue and dead-letter store.

Both are ordered lists of SyncQueueItem persisted as one JSON array under
a fixed key in the durable store, rewritten after every change.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..exceptions import CacheCorruptError
from ..stores.base import KeyValueStore

logger = logging.getLogger(__name__)


@dataclass
class SyncQueueItem:
    """A write that failed remote delivery.

    Attributes:
        key: Cache key of the data domain
        data: Encoded payload snapshot
        timestamp: When the write was enqueued (epoch seconds)
        attempts: Failed background deliveries so far
        last_error: Message of the most recent delivery failure
        dropped_at: When the item entered the dead-letter store
    """

    key: str
    data: Any
    timestamp: float
    attempts: int = 0
    last_error: str | None = None
    dropped_at: float | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "key": self.key,
            "data": self.data,
            "timestamp": self.timestamp,
            "attempts": self.attempts,
        }
        if self.last_error is not None:
            result["last_error"] = self.last_error
        if self.dropped_at is not None:
            result["dropped_at"] = self.dropped_at
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncQueueItem:
        return cls(
            key=data["key"],
            data=data.get("data"),
            timestamp=float(data.get("timestamp") or 0.0),
            attempts=int(data.get("attempts") or 0),
            last_error=data.get("last_error"),
            dropped_at=data.get("dropped_at"),
        )


class PersistentItemList:
    """Ordered list of SyncQueueItem mirrored to one durable record.

    The in-memory list is authoritative once loaded. Persisting snapshots
    the list under a lock, so the record always ends up holding the most
    recent state even when persists overlap.
    """

    def __init__(self, store: KeyValueStore, record_key: str):
        self.store = store
        self.record_key = record_key
        self._items: list[SyncQueueItem] = []
        self._loaded = False
        self._write_lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._snapshot())

    @property
    def loaded(self) -> bool:
        return self._loaded

    def _snapshot(self) -> list[SyncQueueItem]:
        return list(self._items)

    def items(self) -> list[SyncQueueItem]:
        """Snapshot of the current items, oldest first."""
        return self._snapshot()

    async def load(self) -> None:
        """Read the persisted record once.

        A record that fails to parse is logged and treated as empty; the
        next persist overwrites it.
        """
        if self._loaded:
            return

        try:
            raw = await self.store.get(self.record_key)
        except CacheCorruptError as e:
            logger.warning(f"Discarding unreadable record {self.record_key}: {e}")
            raw = None
        if self._loaded:
            return

        loaded: list[SyncQueueItem] = []
        if raw:
            try:
                parsed = json.loads(raw)
                if not isinstance(parsed, list):
                    raise ValueError(f"expected array, got {type(parsed).__name__}")
                loaded = [SyncQueueItem.from_dict(item) for item in parsed]
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"Discarding corrupt record {self.record_key}: {e}")

        # Items appended before the load completed are newer than the record
        self._items = loaded + self._items
        self._loaded = True

    async def persist(self) -> None:
        async with self._write_lock:
            payload = json.dumps([item.to_dict() for item in self._snapshot()])
            await self.store.set(self.record_key, payload)

    async def clear(self) -> None:
        self._items = []
        self._loaded = True
        async with self._write_lock:
            await self.store.remove(self.record_key)


class SyncQueue(PersistentItemList):
    """FIFO of pending remote writes that survives process restarts.

    Items handed out by take_all() stay in flight until they are settled
    or restored. In-flight items are still part of every persisted
    snapshot, ahead of anything enqueued meanwhile, so a restart during a
    drain replays them instead of losing them.
    """

    def __init__(
        self,
        store: KeyValueStore,
        queue_key: str = "@neurolearn/sync_queue",
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(store, queue_key)
        self._clock = clock
        self._in_flight: list[SyncQueueItem] = []

    def _snapshot(self) -> list[SyncQueueItem]:
        return self._in_flight + self._items

    async def enqueue(self, key: str, data: Any) -> SyncQueueItem:
        """Append a write with zero attempts and persist the queue."""
        await self.load()
        item = SyncQueueItem(key=key, data=data, timestamp=self._clock(), attempts=0)
        self._items.append(item)
        await self.persist()
        logger.debug(f"Queued {key} for background sync ({len(self)} pending)")
        return item

    def take_all(self) -> list[SyncQueueItem]:
        """Hand out every waiting item, oldest first, marking them in flight."""
        items, self._items = self._items, []
        self._in_flight = self._in_flight + items
        return items

    def settle(self, item: SyncQueueItem) -> None:
        """Forget an in-flight item that was delivered or dropped."""
        self._in_flight = [i for i in self._in_flight if i is not item]

    def restore_front(self, items: list[SyncQueueItem]) -> None:
        """Put items back ahead of anything enqueued since take_all()."""
        self._in_flight = []
        self._items = list(items) + self._items

    def pending_for(self, key: str) -> list[SyncQueueItem]:
        """Items for one key, oldest first, in flight ones included."""
        return [item for item in self._snapshot() if item.key == key]

    async def clear(self) -> None:
        self._in_flight = []
        await super().clear()


class DeadLetterStore(PersistentItemList):
    """Writes dropped after exhausting their retry budget."""

    def __init__(
        self,
        store: KeyValueStore,
        dead_letter_key: str = "@neurolearn/sync_dead_letter",
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(store, dead_letter_key)
        self._clock = clock

    async def add(self, item: SyncQueueItem) -> None:
        await self.load()
        item.dropped_at = self._clock()
        self._items.append(item)
        await self.persist()

    def take_all(self) -> list[SyncQueueItem]:
        items, self._items = self._items, []
        return items
