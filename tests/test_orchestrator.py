"""Tests for the hybrid sync orchestrator."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from neurolearn_storage.cache import CacheTier, TieredCacheManager
from neurolearn_storage.codec import record_codec
from neurolearn_storage.config import StorageConfig
from neurolearn_storage.domains import Settings
from neurolearn_storage.exceptions import QueueExhaustedError
from neurolearn_storage.stores import MemoryStore
from neurolearn_storage.sync import (
    DeadLetterStore,
    HybridSyncOrchestrator,
    SyncQueue,
    SyncQueueItem,
    SyncResult,
)

from conftest import FakeClock, FlakyRemote

SETTINGS_KEY = "@neurolearn/cache_settings"


def fetch_from(remote: FlakyRemote, collection: str):
    return lambda: remote.fetch(collection)


def save_to(remote: FlakyRemote, collection: str):
    async def save(data: Any) -> None:
        await remote.save(collection, data)

    return save


def wire(orchestrator: HybridSyncOrchestrator, remote: FlakyRemote, *collections: str) -> None:
    """Register a handler per collection and probe with the settings fetch."""
    for collection in collections:
        orchestrator.register_handler(collection, save_to(remote, collection))
    orchestrator.set_connectivity_probe(fetch_from(remote, "settings"))


class TestHybridGet:
    """Remote-first reads with cache and default fallbacks."""

    async def test_online_returns_remote_and_caches(
        self, orchestrator: HybridSyncOrchestrator, remote: FlakyRemote, cache: TieredCacheManager
    ) -> None:
        remote.data["settings"] = {"theme": "light"}

        result = await orchestrator.hybrid_get(fetch_from(remote, "settings"), SETTINGS_KEY, {})

        assert result == {"theme": "light"}
        assert await cache.get(SETTINGS_KEY) == {"theme": "light"}
        assert orchestrator.is_online

    async def test_outage_served_from_cache(
        self, orchestrator: HybridSyncOrchestrator, remote: FlakyRemote, cache: TieredCacheManager
    ) -> None:
        await cache.set("settings", {"theme": "dark"}, CacheTier.WARM)
        remote.online = False

        result = await orchestrator.hybrid_get(fetch_from(remote, "settings"), "settings", {})

        assert result == {"theme": "dark"}
        assert not orchestrator.is_online

    async def test_outage_without_cache_returns_default(
        self, orchestrator: HybridSyncOrchestrator, remote: FlakyRemote
    ) -> None:
        remote.online = False

        result = await orchestrator.hybrid_get(
            fetch_from(remote, "flashcards"), "@neurolearn/cache_flashcards", []
        )

        assert result == []

    async def test_undecodable_cache_entry_purged(
        self, orchestrator: HybridSyncOrchestrator, remote: FlakyRemote, cache: TieredCacheManager
    ) -> None:
        await cache.set(SETTINGS_KEY, "not a settings document")
        remote.online = False
        default = Settings()

        result = await orchestrator.hybrid_get(
            fetch_from(remote, "settings"), SETTINGS_KEY, default, codec=record_codec(Settings)
        )

        assert result is default
        assert await cache.get(SETTINGS_KEY) is None

    async def test_expired_cache_falls_back_to_queued_write(
        self, orchestrator: HybridSyncOrchestrator, remote: FlakyRemote, clock: FakeClock
    ) -> None:
        remote.online = False
        key = "@neurolearn/cache_logic_nodes"
        await orchestrator.hybrid_set(save_to(remote, "logic_nodes"), key, [{"id": "A"}])
        await orchestrator.hybrid_set(save_to(remote, "logic_nodes"), key, [{"id": "A"}, {"id": "B"}])
        clock.advance(31 * 60)

        result = await orchestrator.hybrid_get(fetch_from(remote, "logic_nodes"), key, [])

        assert result == [{"id": "A"}, {"id": "B"}]

    async def test_recovery_flips_back_online(
        self, orchestrator: HybridSyncOrchestrator, remote: FlakyRemote
    ) -> None:
        remote.online = False
        await orchestrator.hybrid_get(fetch_from(remote, "settings"), SETTINGS_KEY, {})
        remote.online = True

        await orchestrator.hybrid_get(fetch_from(remote, "settings"), SETTINGS_KEY, {})

        assert orchestrator.is_online


class TestHybridSet:
    """Remote-first writes with local caching and queueing on failure."""

    async def test_online_write_through(
        self,
        orchestrator: HybridSyncOrchestrator,
        remote: FlakyRemote,
        cache: TieredCacheManager,
        queue: SyncQueue,
    ) -> None:
        await orchestrator.hybrid_set(save_to(remote, "settings"), SETTINGS_KEY, {"theme": "dark"})

        assert remote.data["settings"] == {"theme": "dark"}
        assert await cache.get(SETTINGS_KEY) == {"theme": "dark"}
        assert len(queue) == 0

    async def test_failed_save_queued_once_and_readable(
        self, orchestrator: HybridSyncOrchestrator, remote: FlakyRemote, queue: SyncQueue
    ) -> None:
        remote.online = False

        await orchestrator.hybrid_set(save_to(remote, "settings"), SETTINGS_KEY, {"theme": "dark"})

        pending = queue.pending_for(SETTINGS_KEY)
        assert len(pending) == 1
        assert pending[0].attempts == 0
        assert pending[0].data == {"theme": "dark"}
        assert "settings" not in remote.data

        result = await orchestrator.hybrid_get(fetch_from(remote, "settings"), SETTINGS_KEY, {})
        assert result == {"theme": "dark"}

    async def test_typed_payload_queued_encoded(
        self, orchestrator: HybridSyncOrchestrator, remote: FlakyRemote, queue: SyncQueue
    ) -> None:
        remote.online = False

        await orchestrator.hybrid_set(
            save_to(remote, "settings"),
            SETTINGS_KEY,
            Settings(theme="light"),
            codec=record_codec(Settings),
        )

        assert queue.items()[0].data["theme"] == "light"

    async def test_last_write_wins(
        self, orchestrator: HybridSyncOrchestrator, remote: FlakyRemote
    ) -> None:
        remote.online = False
        save = save_to(remote, "x")

        await orchestrator.hybrid_set(save, "x", "A")
        await orchestrator.hybrid_set(save, "x", "B")

        assert await orchestrator.get("x") == "B"


class TestBackgroundSync:
    """Queue drain behavior."""

    async def test_empty_queue_has_no_side_effects(
        self, orchestrator: HybridSyncOrchestrator, remote: FlakyRemote, durable: MemoryStore
    ) -> None:
        wire(orchestrator, remote, SETTINGS_KEY)

        first = await orchestrator.background_sync()
        second = await orchestrator.background_sync()

        assert first == second == SyncResult()
        assert remote.calls == []
        assert await durable.list_keys() == []

    async def test_drain_after_reconnect(
        self, orchestrator: HybridSyncOrchestrator, remote: FlakyRemote, queue: SyncQueue
    ) -> None:
        wire(orchestrator, remote, "settings")
        remote.online = False
        await orchestrator.hybrid_set(save_to(remote, "settings"), "settings", {"theme": "dark"})
        remote.online = True

        result = await orchestrator.background_sync()

        assert result.synced == 1
        assert remote.data["settings"] == {"theme": "dark"}
        assert len(queue) == 0
        assert orchestrator.is_online

    async def test_probe_failure_keeps_queue(
        self, orchestrator: HybridSyncOrchestrator, remote: FlakyRemote, queue: SyncQueue
    ) -> None:
        wire(orchestrator, remote, "settings")
        remote.online = False
        await orchestrator.hybrid_set(save_to(remote, "settings"), "settings", {"theme": "dark"})

        result = await orchestrator.background_sync()

        assert result == SyncResult()
        assert len(queue) == 1
        assert queue.items()[0].attempts == 0

    async def test_failing_item_dropped_after_three_cycles(
        self,
        orchestrator: HybridSyncOrchestrator,
        remote: FlakyRemote,
        queue: SyncQueue,
        dead_letters: DeadLetterStore,
    ) -> None:
        dropped: list[tuple[SyncQueueItem, QueueExhaustedError]] = []
        orchestrator.on_drop = lambda item, error: dropped.append((item, error))
        wire(orchestrator, remote, "a", "b", "c")
        remote.online = False
        for key in ("a", "b", "c"):
            await orchestrator.hybrid_set(save_to(remote, key), key, key.upper())
        remote.online = True
        remote.failing_saves = {"c"}

        first = await orchestrator.background_sync()
        assert (first.synced, first.failed, first.dropped) == (2, 1, 0)
        assert [(i.key, i.attempts) for i in queue.items()] == [("c", 1)]

        second = await orchestrator.background_sync()
        assert (second.synced, second.failed, second.dropped) == (0, 1, 0)

        third = await orchestrator.background_sync()
        assert (third.synced, third.failed, third.dropped) == (0, 1, 1)

        assert len(queue) == 0
        assert remote.data == {"a": "A", "b": "B"}
        assert [item.key for item in dead_letters.items()] == ["c"]
        assert len(dropped) == 1
        assert dropped[0][1].attempts == 3

    async def test_unknown_key_discarded_without_aborting(
        self, orchestrator: HybridSyncOrchestrator, remote: FlakyRemote, queue: SyncQueue
    ) -> None:
        wire(orchestrator, remote, "settings")
        await queue.enqueue("@neurolearn/cache_unknown", {"x": 1})
        await queue.enqueue("settings", {"theme": "dark"})

        result = await orchestrator.background_sync()

        assert (result.synced, result.skipped) == (1, 1)
        assert len(queue) == 0
        assert remote.data["settings"] == {"theme": "dark"}

        remote.calls.clear()
        assert await orchestrator.background_sync() == SyncResult()
        assert remote.calls == []

    async def test_handler_receives_decoded_value(
        self, orchestrator: HybridSyncOrchestrator, queue: SyncQueue
    ) -> None:
        received: list[Any] = []

        async def save(value: Settings) -> None:
            received.append(value)

        orchestrator.register_handler(SETTINGS_KEY, save, record_codec(Settings))
        await queue.enqueue(SETTINGS_KEY, Settings(theme="light").to_dict())

        await orchestrator.background_sync()

        assert received == [Settings(theme="light")]

    async def test_single_flight(
        self, orchestrator: HybridSyncOrchestrator, queue: SyncQueue
    ) -> None:
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_save(value: Any) -> None:
            started.set()
            await release.wait()

        orchestrator.register_handler("k", slow_save)
        await queue.enqueue("k", 1)

        running = asyncio.create_task(orchestrator.background_sync())
        await started.wait()

        assert orchestrator.sync_in_flight
        assert await orchestrator.background_sync() == SyncResult()

        release.set()
        result = await running
        assert result.synced == 1
        assert not orchestrator.sync_in_flight

    async def test_write_during_drain_is_kept(
        self, orchestrator: HybridSyncOrchestrator, queue: SyncQueue
    ) -> None:
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_save(value: Any) -> None:
            started.set()
            await release.wait()

        orchestrator.register_handler("k", slow_save)
        await queue.enqueue("k", 1)

        running = asyncio.create_task(orchestrator.background_sync())
        await started.wait()
        await queue.enqueue("k", 2)
        release.set()
        await running

        assert [item.data for item in queue.items()] == [2]

    async def test_in_flight_item_persisted_during_drain(
        self, orchestrator: HybridSyncOrchestrator, queue: SyncQueue, durable: MemoryStore
    ) -> None:
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_save(value: Any) -> None:
            started.set()
            await release.wait()

        orchestrator.register_handler("k", slow_save)
        await queue.enqueue("k", 1)

        running = asyncio.create_task(orchestrator.background_sync())
        await started.wait()
        await queue.enqueue("other", 2)

        mid_drain = json.loads(await durable.get(queue.record_key))
        assert [(entry["key"], entry["data"]) for entry in mid_drain] == [("k", 1), ("other", 2)]

        release.set()
        await running

        after = json.loads(await durable.get(queue.record_key))
        assert [entry["key"] for entry in after] == ["other"]

    async def test_cancelled_drain_keeps_items(
        self, orchestrator: HybridSyncOrchestrator, queue: SyncQueue
    ) -> None:
        started = asyncio.Event()

        async def hanging_save(value: Any) -> None:
            started.set()
            await asyncio.Event().wait()

        orchestrator.register_handler("k", hanging_save)
        await queue.enqueue("k", 1)

        running = asyncio.create_task(orchestrator.background_sync())
        await started.wait()
        running.cancel()
        with pytest.raises(asyncio.CancelledError):
            await running

        assert [item.data for item in queue.items()] == [1]
        assert not orchestrator.sync_in_flight

    async def test_requeue_dead_letters(
        self,
        orchestrator: HybridSyncOrchestrator,
        remote: FlakyRemote,
        queue: SyncQueue,
    ) -> None:
        wire(orchestrator, remote, "c")
        remote.failing_saves = {"c"}
        await queue.enqueue("c", "C")
        for _ in range(3):
            await orchestrator.background_sync()
        assert len(await orchestrator.get_dead_letters()) == 1

        remote.failing_saves = set()
        assert await orchestrator.requeue_dead_letters() == 1
        assert queue.items()[0].attempts == 0

        result = await orchestrator.background_sync()
        assert result.synced == 1
        assert await orchestrator.get_dead_letters() == []


class TestOpportunisticSync:
    """Syncs triggered by failed writes and by the periodic loop."""

    @pytest.fixture
    def eager_config(self) -> StorageConfig:
        return StorageConfig(local_backend="memory", sync_interval=0, sync_on_failure=True)

    async def test_failed_write_triggers_sync(
        self,
        cache: TieredCacheManager,
        queue: SyncQueue,
        remote: FlakyRemote,
        eager_config: StorageConfig,
    ) -> None:
        orchestrator = HybridSyncOrchestrator(cache, queue, config=eager_config)
        wire(orchestrator, remote, "settings")
        remote.online = False

        await orchestrator.hybrid_set(save_to(remote, "settings"), "settings", {"theme": "dark"})
        remote.online = True
        await orchestrator.close()

        assert remote.data["settings"] == {"theme": "dark"}
        assert len(queue) == 0

    async def test_periodic_loop_drains_queue(
        self, cache: TieredCacheManager, queue: SyncQueue, remote: FlakyRemote
    ) -> None:
        config = StorageConfig(local_backend="memory", sync_interval=0.01, sync_on_failure=False)
        orchestrator = HybridSyncOrchestrator(cache, queue, config=config)
        wire(orchestrator, remote, "settings")
        await queue.enqueue("settings", {"theme": "dark"})

        async with orchestrator:
            for _ in range(200):
                if not len(queue):
                    break
                await asyncio.sleep(0.01)

        assert remote.data["settings"] == {"theme": "dark"}


class TestMaintenance:
    """Diagnostics, clearing and local accessors."""

    async def test_storage_info(
        self, orchestrator: HybridSyncOrchestrator, remote: FlakyRemote
    ) -> None:
        await orchestrator.set("ui_state", {"tab": 2})
        remote.online = False
        await orchestrator.hybrid_set(save_to(remote, "settings"), SETTINGS_KEY, {"theme": "dark"})

        info = await orchestrator.get_storage_info()

        assert info.is_online is False
        assert info.pending_queue_length == 1
        assert info.cache_entry_count == 2
        assert info.dead_letter_count == 0
        assert info.to_dict()["pending_queue_length"] == 1

    async def test_clear_all_data(
        self,
        orchestrator: HybridSyncOrchestrator,
        remote: FlakyRemote,
        queue: SyncQueue,
        durable: MemoryStore,
    ) -> None:
        remote.data["flashcards"] = [{"id": "c1"}]
        await orchestrator.set("ui_state", 1)
        await queue.enqueue("k", 1)

        await orchestrator.clear_all_data()

        assert remote.data == {}
        assert await orchestrator.get("ui_state") is None
        assert len(queue) == 0
        assert await durable.list_keys() == []

    async def test_clear_all_data_offline_still_clears_local(
        self, orchestrator: HybridSyncOrchestrator, remote: FlakyRemote, queue: SyncQueue
    ) -> None:
        remote.online = False
        await orchestrator.set("ui_state", 1)
        await queue.enqueue("k", 1)

        await orchestrator.clear_all_data()

        assert await orchestrator.get("ui_state") is None
        assert len(queue) == 0

    async def test_generic_accessors_default(self, orchestrator: HybridSyncOrchestrator) -> None:
        assert await orchestrator.get("missing", default={"tab": 0}) == {"tab": 0}
