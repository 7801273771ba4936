"""
Shared test configuration and fixtures.

Provides a controllable clock and an in-memory remote store whose
availability can be toggled per test, so offline behavior is exercised
without a network.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

import pytest

from neurolearn_storage.cache import TieredCacheManager
from neurolearn_storage.config import StorageConfig
from neurolearn_storage.exceptions import RemoteUnavailableError
from neurolearn_storage.remote import RemoteStore
from neurolearn_storage.stores import MemoryStore
from neurolearn_storage.sync import DeadLetterStore, HybridSyncOrchestrator, SyncQueue

logger = logging.getLogger(__name__)


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FlakyRemote(RemoteStore):
    """
    In-memory remote store with switchable failures.

    - ``online = False`` makes every call raise RemoteUnavailableError
    - ``failing_saves`` lists collections whose saves always fail
    """

    def __init__(self, data: dict[str, Any] | None = None):
        self.data: dict[str, Any] = dict(data or {})
        self.online = True
        self.failing_saves: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    def _check(self, operation: str, collection: str = "*") -> None:
        self.calls.append((operation, collection))
        if not self.online:
            raise RemoteUnavailableError(f"{operation} {collection}")

    async def fetch(self, collection: str) -> Any:
        self._check("fetch", collection)
        return copy.deepcopy(self.data.get(collection))

    async def save(self, collection: str, data: Any) -> None:
        self._check("save", collection)
        if collection in self.failing_saves:
            raise RemoteUnavailableError(f"save {collection}", status=503)
        self.data[collection] = copy.deepcopy(data)

    async def clear_all(self) -> None:
        self._check("clear_all")
        self.data.clear()

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> StorageConfig:
    """Deterministic config: no periodic loop, no opportunistic syncs."""
    return StorageConfig(local_backend="memory", sync_interval=0, sync_on_failure=False)


@pytest.fixture
def durable() -> MemoryStore:
    return MemoryStore(name="durable")


@pytest.fixture
def cache(durable: MemoryStore, config: StorageConfig, clock: FakeClock) -> TieredCacheManager:
    return TieredCacheManager(durable, config=config, clock=clock)


@pytest.fixture
def queue(durable: MemoryStore, config: StorageConfig, clock: FakeClock) -> SyncQueue:
    return SyncQueue(durable, config.queue_key, clock=clock)


@pytest.fixture
def dead_letters(durable: MemoryStore, config: StorageConfig, clock: FakeClock) -> DeadLetterStore:
    return DeadLetterStore(durable, config.dead_letter_key, clock=clock)


@pytest.fixture
def remote() -> FlakyRemote:
    return FlakyRemote()


@pytest.fixture
async def orchestrator(
    cache: TieredCacheManager,
    queue: SyncQueue,
    dead_letters: DeadLetterStore,
    config: StorageConfig,
    remote: FlakyRemote,
):
    orchestrator = HybridSyncOrchestrator(
        cache,
        queue,
        dead_letters=dead_letters,
        config=config,
        clear_remote=remote.clear_all,
    )
    await orchestrator.start(periodic=False)
    yield orchestrator
    await orchestrator.close()
