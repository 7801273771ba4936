"""
Hybrid sync orchestrator.

Gives every domain accessor a uniform remote-first contract:
- Reads: remote first, write-through to the cache, fall back to the cache,
  then to a caller-supplied default
- Writes: remote first; on failure cache locally and queue for background sync
- Background sync: single-flight FIFO drain of the sync queue

Nothing here raises past the public API for reads, and writes never raise.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from typing import Any, TypeVar

from ..cache.manager import TieredCacheManager
from ..cache.types import CacheTier
from ..codec import JSON_CODEC, Codec
from ..config import StorageConfig
from ..exceptions import QueueExhaustedError
from ..logging_utils import StorageLoggerAdapter
from .best_effort import best_effort
from .queue import DeadLetterStore, SyncQueue, SyncQueueItem

logger = logging.getLogger(__name__)

T = TypeVar("T")

RemoteFetch = Callable[[], Awaitable[T]]
RemoteSave = Callable[[Any], Awaitable[Any]]
DropCallback = Callable[[SyncQueueItem, QueueExhaustedError], None]


@dataclass
class SyncResult:
    """Outcome of one background sync pass."""

    synced: int = 0
    failed: int = 0
    dropped: int = 0
    skipped: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class StorageInfo:
    """Diagnostics snapshot for the UI."""

    is_online: bool
    cache_entry_count: int
    pending_queue_length: int
    dead_letter_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class _Handler:
    save: RemoteSave
    codec: Codec[Any]


class HybridSyncOrchestrator:
    """Coordinates remote-first reads/writes, the sync queue and the cache.

    The cache, the queue and the connectivity flag are owned by this
    instance; construct one per process (tests may construct many).

    Example:
        >>> orchestrator = HybridSyncOrchestrator(cache, queue, config=config)
        >>> orchestrator.register_handler("@neurolearn/cache_settings", remote_save_settings)
        >>> orchestrator.set_connectivity_probe(remote_fetch_settings)
        >>> await orchestrator.start()
        >>> settings = await orchestrator.hybrid_get(remote_fetch_settings, key, defaults)
    """

    def __init__(
        self,
        cache: TieredCacheManager,
        queue: SyncQueue,
        dead_letters: DeadLetterStore | None = None,
        config: StorageConfig | None = None,
        on_drop: DropCallback | None = None,
        clear_remote: Callable[[], Awaitable[Any]] | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            cache: Tiered cache manager
            queue: Durable sync queue
            dead_letters: Store for writes dropped after max attempts
            config: Storage configuration
            on_drop: Callback when a queued write is dropped
            clear_remote: Remote wipe used by clear_all_data()
        """
        self.cache = cache
        self.queue = queue
        self.dead_letters = dead_letters
        self.config = config or cache.config
        self.on_drop = on_drop
        self.clear_remote = clear_remote

        self._is_online = True
        self._handlers: dict[str, _Handler] = {}
        self._probe: RemoteFetch[Any] | None = None

        self._sync_in_flight = False
        self._pending_tasks: set[asyncio.Task[Any]] = set()
        self._loop_task: asyncio.Task[None] | None = None
        self._running = False

    # Registration

    def register_handler(
        self,
        cache_key: str,
        save: RemoteSave,
        codec: Codec[Any] | None = None,
    ) -> None:
        """Map a queued key to the remote save function for its domain.

        Args:
            cache_key: Cache key used by hybrid_set for the domain
            save: Remote save function taking the decoded payload
            codec: Decodes the queued payload before it reaches save
        """
        self._handlers[cache_key] = _Handler(save=save, codec=codec or JSON_CODEC)

    def set_connectivity_probe(self, probe: RemoteFetch[Any]) -> None:
        """Use a lightweight remote read as the connectivity check."""
        self._probe = probe

    # Connectivity

    @property
    def is_online(self) -> bool:
        return self._is_online

    def _mark_online(self) -> None:
        if not self._is_online:
            logger.info("Remote store reachable again, back online")
        self._is_online = True

    def _mark_offline(self, context: str, error: Exception) -> None:
        if self._is_online:
            logger.info(f"Remote store unavailable ({context}), operating offline: {error}")
        self._is_online = False

    async def check_connectivity(self) -> bool:
        """Run the connectivity probe. Never raises.

        Without a probe the answer is always True and the handlers
        themselves find out whether the remote is reachable.
        """
        if self._probe is None:
            return True
        try:
            await self._probe()
        except Exception as e:
            self._mark_offline("connectivity probe", e)
            return False
        self._mark_online()
        return True

    # Hybrid read/write

    async def _write_through(
        self, cache_key: str, value: Any, tier: CacheTier, codec: Codec[Any]
    ) -> None:
        await self.cache.set(cache_key, codec.encode(value), tier)

    async def _read_local(self, cache_key: str, default: T, codec: Codec[Any]) -> T:
        """Offline read: cache, then the newest queued write, then default."""
        log = StorageLoggerAdapter(logger, {"cache_key": cache_key})
        try:
            cached = await self.cache.get(cache_key)
        except Exception as e:
            log.warning(f"Cache read failed for {cache_key}: {e}")
            cached = None
        if cached is not None:
            try:
                return codec.decode(cached)
            except Exception as e:
                log.warning(f"Cached {cache_key} failed to decode, purging: {e}")
                await best_effort(self.cache.delete(cache_key), f"purge of {cache_key}")

        # An expired cache copy must not hide a write still waiting for sync
        await best_effort(self.queue.load(), "sync queue load")
        pending = self.queue.pending_for(cache_key)
        if pending:
            try:
                return codec.decode(pending[-1].data)
            except Exception as e:
                log.warning(f"Queued {cache_key} failed to decode: {e}")
        return default

    async def hybrid_get(
        self,
        remote_fetch: RemoteFetch[T],
        cache_key: str,
        default: T,
        codec: Codec[Any] | None = None,
        tier: CacheTier = CacheTier.WARM,
    ) -> T:
        """
        Read remote-first with cache and default fallbacks.

        Args:
            remote_fetch: Fetches the authoritative value
            cache_key: Cache key of the data domain
            default: Returned when neither remote nor cache has a value
            codec: Converts between the typed value and cached JSON
            tier: Cache tier for the write-through copy

        Returns:
            Remote value, else cached value, else the newest queued write,
            else default
        """
        codec = codec or JSON_CODEC
        try:
            result = await remote_fetch()
        except Exception as e:
            self._mark_offline(f"read {cache_key}", e)
            return await self._read_local(cache_key, default, codec)

        self._mark_online()
        await best_effort(
            self._write_through(cache_key, result, tier, codec),
            f"cache write-through for {cache_key}",
        )
        return result

    async def hybrid_set(
        self,
        remote_save: RemoteSave,
        cache_key: str,
        data: T,
        codec: Codec[Any] | None = None,
        tier: CacheTier = CacheTier.WARM,
    ) -> None:
        """
        Write remote-first; on failure cache locally and queue for sync.

        Args:
            remote_save: Saves the value to the authoritative store
            cache_key: Cache key of the data domain
            data: Value to save
            codec: Converts between the typed value and cached JSON
            tier: Cache tier for the local copy
        """
        codec = codec or JSON_CODEC
        try:
            await remote_save(data)
        except Exception as e:
            self._mark_offline(f"save {cache_key}", e)
            logger.warning(f"Remote save failed, caching {cache_key} locally: {e}")
            await best_effort(
                self._write_through(cache_key, data, tier, codec),
                f"local cache write for {cache_key}",
            )
            await best_effort(
                self._enqueue(cache_key, data, codec), f"sync enqueue for {cache_key}"
            )
            if self.config.sync_on_failure:
                self.trigger_background_sync()
            return

        self._mark_online()
        await best_effort(
            self._write_through(cache_key, data, tier, codec),
            f"cache write-through for {cache_key}",
        )

    async def _enqueue(self, cache_key: str, data: Any, codec: Codec[Any]) -> None:
        await self.queue.enqueue(cache_key, codec.encode(data))

    # Generic local accessors

    async def get(self, key: str, default: Any = None) -> Any:
        """Read a local-only value from the tiered cache."""
        return await best_effort(self.cache.get(key, default), f"cache read for {key}", default)

    async def set(self, key: str, value: Any, tier: CacheTier = CacheTier.WARM) -> None:
        """Write a local-only value to the tiered cache."""
        await best_effort(self.cache.set(key, value, tier), f"cache write for {key}")

    # Background sync

    @property
    def sync_in_flight(self) -> bool:
        return self._sync_in_flight

    def trigger_background_sync(self) -> asyncio.Task[Any]:
        """Schedule a background sync without waiting for it."""
        task = asyncio.create_task(
            best_effort(self.background_sync(), "background sync", SyncResult())
        )
        self._pending_tasks.add(task)
        task.add_done_callback(self._pending_tasks.discard)
        return task

    async def background_sync(self) -> SyncResult:
        """
        Drain the sync queue once.

        A call made while another drain is running returns an empty
        result immediately.

        Returns:
            Counts of synced, failed, dropped and skipped items
        """
        if self._sync_in_flight:
            logger.debug("Background sync already running, skipping")
            return SyncResult()

        self._sync_in_flight = True
        try:
            return await self._drain()
        finally:
            self._sync_in_flight = False

    async def _drain(self) -> SyncResult:
        result = SyncResult()

        await self.queue.load()
        if not len(self.queue):
            return result

        if not await self.check_connectivity():
            return result

        items = self.queue.take_all()
        remaining: list[SyncQueueItem] = []
        processed = 0
        try:
            for item in items:
                handler = self._handlers.get(item.key)
                if handler is None:
                    logger.warning(f"No remote handler for queued key {item.key}, discarding")
                    self.queue.settle(item)
                    result.skipped += 1
                    processed += 1
                    continue

                try:
                    await handler.save(handler.codec.decode(item.data))
                except Exception as e:
                    item.attempts += 1
                    item.last_error = str(e)
                    result.failed += 1
                    logger.warning(
                        f"Sync of {item.key} failed (attempt "
                        f"{item.attempts}/{self.config.max_sync_attempts}): {e}"
                    )
                    if item.attempts >= self.config.max_sync_attempts:
                        result.dropped += 1
                        await self._drop(item, e)
                        self.queue.settle(item)
                    else:
                        remaining.append(item)
                else:
                    self.queue.settle(item)
                    result.synced += 1
                processed += 1
        finally:
            self.queue.restore_front(remaining + items[processed:])
            await best_effort(self.queue.persist(), "sync queue persist")

        if result.synced:
            logger.info(f"Background sync completed: {result.synced} synced, {result.failed} failed")
        return result

    async def _drop(self, item: SyncQueueItem, cause: Exception) -> None:
        error = QueueExhaustedError(item.key, item.attempts, cause)
        logger.error(f"{error.message}, moving to dead-letter store")
        if self.dead_letters is not None:
            await best_effort(self.dead_letters.add(item), f"dead-letter write for {item.key}")
        if self.on_drop is not None:
            try:
                self.on_drop(item, error)
            except Exception as e:
                logger.error(f"on_drop callback raised for {item.key}: {e}")

    # Dead letters

    async def get_dead_letters(self) -> list[SyncQueueItem]:
        if self.dead_letters is None:
            return []
        await self.dead_letters.load()
        return self.dead_letters.items()

    async def requeue_dead_letters(self) -> int:
        """Move every dropped write back into the sync queue with a fresh budget.

        Returns:
            Number of items requeued
        """
        if self.dead_letters is None:
            return 0
        await self.dead_letters.load()
        await self.queue.load()

        items = self.dead_letters.take_all()
        for item in items:
            await self.queue.enqueue(item.key, item.data)
        await self.dead_letters.persist()
        if items:
            logger.info(f"Requeued {len(items)} dead-letter writes")
        return len(items)

    # Diagnostics and maintenance

    async def get_storage_info(self) -> StorageInfo:
        await best_effort(self.queue.load(), "sync queue load")
        dead_count = 0
        if self.dead_letters is not None:
            await best_effort(self.dead_letters.load(), "dead-letter load")
            dead_count = len(self.dead_letters)
        entry_count = await best_effort(self.cache.count_entries(), "cache entry count", 0)
        return StorageInfo(
            is_online=self._is_online,
            cache_entry_count=entry_count,
            pending_queue_length=len(self.queue),
            dead_letter_count=dead_count,
        )

    async def clear_all_data(self) -> None:
        """Wipe the remote store, both cache tiers, the queue and dead letters."""
        if self.clear_remote is not None:
            try:
                await self.clear_remote()
            except Exception as e:
                logger.warning(f"Failed to clear remote data: {e}")

        await best_effort(self.cache.clear(), "cache clear")
        await best_effort(self.queue.clear(), "sync queue clear")
        if self.dead_letters is not None:
            await best_effort(self.dead_letters.clear(), "dead-letter clear")
        logger.info("All data cleared (remote + cache + sync queue)")

    # Lifecycle

    async def start(self, periodic: bool = True) -> None:
        """Load persisted state and start the periodic sync loop.

        Args:
            periodic: Run background_sync every ``sync_interval`` seconds
        """
        if self._running:
            return
        self._running = True

        await best_effort(self.queue.load(), "sync queue load")
        if self.dead_letters is not None:
            await best_effort(self.dead_letters.load(), "dead-letter load")

        if periodic and self.config.sync_interval > 0:
            self._loop_task = asyncio.create_task(self._sync_loop())

    async def _sync_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.config.sync_interval)
                await self.cache.cleanup()
                await self.background_sync()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Sync loop error: {e}")

    async def close(self) -> None:
        """Stop the periodic loop and wait for scheduled syncs to finish."""
        self._running = False

        if self._loop_task:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

        if self._pending_tasks:
            await asyncio.gather(*self._pending_tasks, return_exceptions=True)

    async def __aenter__(self) -> HybridSyncOrchestrator:
        await self.start()
        return self

    async def __aexit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        await self.close()
