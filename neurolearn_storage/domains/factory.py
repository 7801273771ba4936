"""Wiring of config, stores, cache, queue and orchestrator into one accessor."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from ..cache.manager import TieredCacheManager
from ..config import StorageConfig
from ..remote.base import RemoteStore
from ..remote.http import HttpRemoteStore
from ..stores import HotCacheStore, MemoryStore, open_local_store
from ..sync.orchestrator import DropCallback, HybridSyncOrchestrator
from ..sync.queue import DeadLetterStore, SyncQueue
from .service import StudyDataStorage

logger = logging.getLogger(__name__)


def create_study_storage(
    config: StorageConfig | None = None,
    remote: RemoteStore | None = None,
    clock: Callable[[], float] = time.time,
    on_drop: DropCallback | None = None,
) -> StudyDataStorage:
    """
    Build a StudyDataStorage from configuration.

    Args:
        config: Storage configuration (defaults to the environment)
        remote: Remote store; an HttpRemoteStore on ``config.remote_url`` if omitted
        clock: Time source in epoch seconds for cache and queue timestamps
        on_drop: Called for each queued write dropped after max attempts

    Returns:
        An accessor that is not started yet; use ``async with`` or start()

    Raises:
        ConfigurationError: If no remote is given and no remote_url is configured
    """
    config = config or StorageConfig.from_environment()
    if remote is None:
        remote = HttpRemoteStore.from_config(config)

    durable = open_local_store(config)
    hot_store = HotCacheStore(
        fast=MemoryStore(capacity_bytes=config.hot_cache_max_bytes, name="hot"),
        fallback=durable,
        cooldown=config.hot_cache_cooldown,
    )

    cache = TieredCacheManager(durable, config=config, hot_store=hot_store, clock=clock)
    queue = SyncQueue(durable, config.queue_key, clock=clock)
    dead_letters = DeadLetterStore(durable, config.dead_letter_key, clock=clock)

    orchestrator = HybridSyncOrchestrator(
        cache,
        queue,
        dead_letters=dead_letters,
        config=config,
        on_drop=on_drop,
        clear_remote=remote.clear_all,
    )
    logger.debug(f"Study storage wired with {config.local_backend} durable store")
    return StudyDataStorage(orchestrator, remote, stores=[hot_store, durable])
