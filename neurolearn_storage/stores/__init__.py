"""
Local key/value stores.

- FileStore: durable, one file per key (aiofiles)
- SQLiteStore: durable, single database file (aiosqlite)
- MemoryStore: in-process, optionally capacity-limited
- HotCacheStore: fast store with cooldown fallback to a durable store
"""

from __future__ import annotations

from ..config import StorageConfig
from .base import KeyValueStore
from .file_store import FileStore
from .hot_cache import HotCacheStore
from .memory import MemoryStore
from .sqlite_store import SQLiteStore


def open_local_store(config: StorageConfig) -> KeyValueStore:
    """Build the durable store named by ``config.local_backend``."""
    if config.local_backend == "sqlite":
        return SQLiteStore(config.resolved_sqlite_path)
    if config.local_backend == "memory":
        return MemoryStore(name="durable-memory")
    return FileStore(config.resolved_local_path)


__all__ = [
    "KeyValueStore",
    "FileStore",
    "SQLiteStore",
    "MemoryStore",
    "HotCacheStore",
    "open_local_store",
]
