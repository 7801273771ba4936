"""
Tiered cache manager.

Two-level read-through/write-through cache:
- Memory tier: OrderedDict in recency order, bounded by an estimated-size budget
- Durable tier: one JSON entry per key under ``cache_prefix`` in a KeyValueStore

Every mutation of the memory tier happens synchronously before the first
await of an operation, so a concurrent task never observes a half-applied
change. Writes also bump a per-key generation; a read whose durable
lookup was overtaken by a write never promotes what it found.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from ..config import StorageConfig
from ..exceptions import CacheCorruptError, StorageError
from ..stores.base import KeyValueStore
from .sizing import estimate_size
from .types import CacheEntry, CacheTier

logger = logging.getLogger(__name__)


class TieredCacheManager:
    """Memory + durable cache with per-tier TTL and LRU eviction.

    Read path:
    1. Memory tier, if present and unexpired (recency bumped)
    2. Durable tier, if present and unexpired (promoted to memory as WARM)
    3. Miss

    Write path:
    - HOT/WARM entries are admitted to memory after evicting least recently
      used entries until the new entry fits the budget
    - Every entry is persisted, whatever its tier; HOT entries go through
      the hot cache store when one is configured
    """

    def __init__(
        self,
        durable: KeyValueStore,
        config: StorageConfig | None = None,
        hot_store: KeyValueStore | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the cache manager.

        Args:
            durable: Store for the durable tier
            config: TTLs, memory budget and key prefix
            hot_store: Optional faster store for HOT entries
            clock: Time source in epoch seconds
        """
        self.durable = durable
        self.hot_store = hot_store
        self.config = config or StorageConfig()
        self._clock = clock

        self._memory: OrderedDict[str, CacheEntry] = OrderedDict()
        self._memory_bytes = 0

        self._generations: dict[str, int] = {}
        self._epoch = 0

        self._hits = 0
        self._misses = 0
        self._evictions = 0

    # Tier policy

    def ttl_for(self, tier: CacheTier) -> float:
        if tier is CacheTier.HOT:
            return self.config.hot_ttl
        if tier is CacheTier.WARM:
            return self.config.warm_ttl
        return self.config.cold_ttl

    def is_expired(self, entry: CacheEntry, now: float | None = None) -> bool:
        now = self._clock() if now is None else now
        return entry.age(now) >= self.ttl_for(entry.tier)

    def _storage_key(self, key: str) -> str:
        return f"{self.config.cache_prefix}{key}"

    def _store_for(self, tier: CacheTier) -> KeyValueStore:
        if tier is CacheTier.HOT and self.hot_store is not None:
            return self.hot_store
        return self.durable

    def _stores(self) -> list[KeyValueStore]:
        if self.hot_store is None:
            return [self.durable]
        return [self.hot_store, self.durable]

    # Write generations

    def _bump(self, key: str) -> None:
        self._generations[key] = self._generations.get(key, 0) + 1

    def _generation(self, key: str) -> tuple[int, int]:
        return self._epoch, self._generations.get(key, 0)

    # Memory tier (synchronous helpers)

    def _drop_memory(self, key: str) -> bool:
        entry = self._memory.pop(key, None)
        if entry is None:
            return False
        self._memory_bytes -= entry.size
        return True

    def _evict_lru(self) -> None:
        key, entry = self._memory.popitem(last=False)
        self._memory_bytes -= entry.size
        self._evictions += 1
        logger.debug(f"Evicted {key} ({entry.size} bytes) from memory tier")

    def _admit(self, key: str, entry: CacheEntry) -> bool:
        """Insert into memory, evicting LRU entries first.

        Returns:
            False if the entry is larger than the whole budget
        """
        budget = self.config.max_memory_bytes
        while self._memory and self._memory_bytes + entry.size > budget:
            self._evict_lru()

        if self._memory_bytes + entry.size > budget:
            logger.debug(f"{key} ({entry.size} bytes) exceeds memory budget, durable tier only")
            return False

        self._memory[key] = entry
        self._memory_bytes += entry.size
        return True

    # Durable tier

    async def _read_persisted(self, key: str) -> CacheEntry | None:
        generation = self._generation(key)
        storage_key = self._storage_key(key)
        store = self.hot_store or self.durable
        try:
            raw = await store.get(storage_key)
            if raw is None and store is not self.durable:
                raw = await self.durable.get(storage_key)
        except (CacheCorruptError, UnicodeDecodeError) as e:
            logger.warning(f"Purging unreadable cache entry {key}: {e}")
            await self._purge_if_unchanged(key, generation)
            return None
        except StorageError as e:
            logger.warning(f"Durable cache read failed for {key}: {e}")
            return None
        if raw is None:
            return None

        try:
            entry = CacheEntry.from_json(key, raw)
        except CacheCorruptError as e:
            logger.warning(f"Purging corrupt cache entry {key}: {e.details.get('cause')}")
            await self._purge_if_unchanged(key, generation)
            return None

        if self.is_expired(entry):
            await self._purge_if_unchanged(key, generation)
            return None

        return entry

    async def _purge_if_unchanged(self, key: str, generation: tuple[int, int]) -> None:
        # A write that landed meanwhile replaced the record being purged
        if self._generation(key) == generation:
            await self._remove_persisted(key)

    async def _remove_persisted(self, key: str) -> None:
        storage_key = self._storage_key(key)
        for store in self._stores():
            try:
                await store.remove(storage_key)
            except StorageError as e:
                logger.warning(f"Durable cache delete failed for {key}: {e}")

    # Public API

    async def get(self, key: str, default: Any = None) -> Any:
        """
        Read a cached value.

        Args:
            key: Logical storage key
            default: Returned on a miss

        Returns:
            Cached payload, or default on a miss
        """
        now = self._clock()
        entry = self._memory.get(key)
        if entry is not None:
            if not self.is_expired(entry, now):
                entry.touch(now)
                self._memory.move_to_end(key)
                self._hits += 1
                return entry.data
            self._drop_memory(key)

        generation = self._generation(key)
        persisted = await self._read_persisted(key)

        if self._generation(key) != generation:
            # Overtaken by a write: serve what it left behind, promote nothing
            current = self._memory.get(key)
            if current is not None and not self.is_expired(current):
                self._hits += 1
                return current.data
            persisted = await self._read_persisted(key)
            if persisted is None:
                self._misses += 1
                return default
            self._hits += 1
            return persisted.data

        if persisted is None:
            self._misses += 1
            return default

        self._drop_memory(key)
        self._admit(key, self._promoted(persisted))
        self._hits += 1
        return persisted.data

    def _promoted(self, persisted: CacheEntry) -> CacheEntry:
        """WARM copy of a durable entry that never outlives its source."""
        now = self._clock()
        source_expiry = persisted.timestamp + self.ttl_for(persisted.tier)
        return CacheEntry(
            data=persisted.data,
            timestamp=min(now, source_expiry - self.ttl_for(CacheTier.WARM)),
            access_count=persisted.access_count + 1,
            last_accessed=now,
            tier=CacheTier.WARM,
            size=persisted.size or estimate_size(persisted.data),
        )

    async def set(self, key: str, value: Any, tier: CacheTier = CacheTier.WARM) -> None:
        """
        Write a value to the cache.

        A value too large for memory still lands in the durable tier.

        Args:
            key: Logical storage key
            value: JSON-compatible payload
            tier: Priority tier

        Raises:
            StorageIOError: If the value is not JSON-serializable
        """
        now = self._clock()
        entry = CacheEntry(
            data=value,
            timestamp=now,
            access_count=1,
            last_accessed=now,
            tier=tier,
            size=estimate_size(value),
        )
        raw = entry.to_json(key)

        self._bump(key)
        self._drop_memory(key)
        if tier.memory_resident:
            self._admit(key, entry)

        if tier is not CacheTier.HOT and self.hot_store is not None:
            # Reads consult the hot store first, so a stale HOT copy must go
            try:
                await self.hot_store.remove(self._storage_key(key))
            except StorageError as e:
                logger.warning(f"Hot cache delete failed for {key}: {e}")

        try:
            await self._store_for(tier).set(self._storage_key(key), raw)
        except StorageError as e:
            logger.warning(f"Durable cache write failed for {key}: {e}")

    async def delete(self, key: str) -> None:
        """Remove a key from both tiers."""
        self._bump(key)
        self._drop_memory(key)
        await self._remove_persisted(key)

    async def invalidate(self, prefix: str) -> int:
        """
        Remove every entry whose key starts with prefix, in both tiers.

        Returns:
            Number of memory entries dropped plus durable records removed
        """
        self._epoch += 1
        removed = 0
        for key in [k for k in self._memory if k.startswith(prefix)]:
            self._drop_memory(key)
            removed += 1

        storage_prefix = self._storage_key(prefix)
        for store in self._stores():
            try:
                removed += await store.clear_prefix(storage_prefix)
            except StorageError as e:
                logger.warning(f"Durable cache invalidate failed for {prefix!r}: {e}")
        return removed

    async def cleanup(self) -> int:
        """
        Purge expired memory-tier entries.

        Returns:
            Number of entries purged
        """
        now = self._clock()
        expired = [k for k, e in self._memory.items() if self.is_expired(e, now)]
        for key in expired:
            self._drop_memory(key)
        if expired:
            logger.debug(f"Cache cleanup purged {len(expired)} expired memory entries")
        return len(expired)

    async def clear(self) -> None:
        """Wipe both tiers."""
        self._epoch += 1
        self._generations.clear()
        self._memory.clear()
        self._memory_bytes = 0
        for store in self._stores():
            try:
                await store.clear_prefix(self.config.cache_prefix)
            except StorageError as e:
                logger.warning(f"Durable cache clear failed: {e}")

    async def count_entries(self) -> int:
        """Number of distinct keys cached in either tier."""
        keys = set(self._memory)
        prefix = self.config.cache_prefix
        for store in self._stores():
            try:
                keys.update(k[len(prefix):] for k in await store.keys_with_prefix(prefix))
            except StorageError as e:
                logger.warning(f"Durable cache key listing failed: {e}")
        return len(keys)

    def memory_keys(self) -> list[str]:
        """Memory-tier keys, least recently used first."""
        return list(self._memory)

    @property
    def memory_bytes(self) -> int:
        return self._memory_bytes

    def stats(self) -> dict[str, Any]:
        budget = self.config.max_memory_bytes
        return {
            "memory_entries": len(self._memory),
            "memory_bytes": self._memory_bytes,
            "memory_utilization": self._memory_bytes / budget * 100,
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
        }
