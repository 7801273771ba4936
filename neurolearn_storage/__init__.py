"""
NeuroLearn Storage

Offline-first hybrid storage engine for study data.

Provides:
- Tiered cache (memory + durable) with per-tier TTL and LRU eviction
- Durable sync queue for writes that failed remote delivery
- Remote-first reads/writes with cache fallback and background sync
- Typed accessors for settings, flashcards, logic nodes and sessions

Usage:

    >>> from neurolearn_storage import StorageConfig, create_study_storage
    >>> config = StorageConfig.from_environment()
    >>> async with create_study_storage(config) as storage:
    ...     settings = await storage.get_settings()
    ...     settings.daily_goal = 90
    ...     await storage.save_settings(settings)  # queued if offline
    ...
    ...     info = await storage.get_storage_info()
    ...     print(info.pending_queue_length)

Local backend selection:

    # One file per key (default)
    StorageConfig(local_backend="file", local_path="~/.neurolearn/storage")

    # Single SQLite database
    StorageConfig(local_backend="sqlite", sqlite_path="~/.neurolearn/storage.db")
"""

from .cache import CacheEntry, CacheTier, TieredCacheManager, estimate_size
from .codec import JSON_CODEC, Codec, list_codec, record_codec
from .config import StorageConfig
from .domains import StudyDataStorage, create_study_storage
from .exceptions import (
    CacheCorruptError,
    CapacityExceededError,
    ConfigurationError,
    QueueExhaustedError,
    RemoteUnavailableError,
    StorageError,
    StorageIOError,
)
from .logging_utils import configure_structured_logging, get_storage_logger
from .remote import HttpRemoteStore, RemoteStore
from .stores import (
    FileStore,
    HotCacheStore,
    KeyValueStore,
    MemoryStore,
    SQLiteStore,
    open_local_store,
)
from .sync import (
    DeadLetterStore,
    HybridSyncOrchestrator,
    StorageInfo,
    SyncQueue,
    SyncQueueItem,
    SyncResult,
)

__all__ = [
    # Configuration
    "StorageConfig",
    # Cache
    "TieredCacheManager",
    "CacheEntry",
    "CacheTier",
    "estimate_size",
    # Sync
    "HybridSyncOrchestrator",
    "SyncQueue",
    "SyncQueueItem",
    "DeadLetterStore",
    "SyncResult",
    "StorageInfo",
    # Stores
    "KeyValueStore",
    "FileStore",
    "SQLiteStore",
    "MemoryStore",
    "HotCacheStore",
    "open_local_store",
    # Remote
    "RemoteStore",
    "HttpRemoteStore",
    # Domains
    "StudyDataStorage",
    "create_study_storage",
    "Codec",
    "JSON_CODEC",
    "record_codec",
    "list_codec",
    # Logging
    "configure_structured_logging",
    "get_storage_logger",
    # Exceptions
    "StorageError",
    "RemoteUnavailableError",
    "CacheCorruptError",
    "CapacityExceededError",
    "QueueExhaustedError",
    "StorageIOError",
    "ConfigurationError",
]

__version__ = "0.1.0"
