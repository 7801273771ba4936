"""
Storage configuration.

Configuration can be provided directly, via environment variables, or via
the ``storage`` section of a YAML settings file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError

MIB = 1024 * 1024

_LOCAL_BACKENDS = ("file", "sqlite", "memory")


@dataclass
class StorageConfig:
    """Configuration for the hybrid storage engine.

    Environment Variables:
        NEUROLEARN_LOCAL_BACKEND: Durable store kind (file, sqlite, memory)
        NEUROLEARN_LOCAL_PATH: Directory for the file store
        NEUROLEARN_SQLITE_PATH: Database path for the sqlite store
        NEUROLEARN_REMOTE_URL: Base URL of the remote authoritative store
        NEUROLEARN_REMOTE_API_KEY: Bearer token for the remote store
        NEUROLEARN_REMOTE_TIMEOUT: Remote call timeout in seconds
        NEUROLEARN_MAX_MEMORY_MB: Memory tier budget in MiB
        NEUROLEARN_SYNC_INTERVAL: Seconds between periodic background syncs

    Attributes:
        hot_ttl: Seconds a hot entry stays readable
        warm_ttl: Seconds a warm entry stays readable
        cold_ttl: Seconds a cold entry stays readable
        max_memory_bytes: Budget for the estimated size of memory-tier entries
        max_sync_attempts: Failed deliveries before a queued write is dropped
        hot_cache_max_bytes: Capacity of the in-process hot cache store
        hot_cache_cooldown: Seconds the hot cache is bypassed after a failure
        sync_interval: Seconds between periodic syncs (0 disables the loop)
        sync_on_failure: Trigger a background sync right after a failed write
        local_backend: Durable store kind
        local_path: Directory for the file store
        sqlite_path: Database path for the sqlite store
        remote_url: Base URL of the HTTP remote store
        remote_api_key: Bearer token for the HTTP remote store
        remote_timeout: Seconds before a remote call is abandoned
        cache_prefix: Key namespace of cache entries in the durable store
        queue_key: Durable key holding the sync queue
        dead_letter_key: Durable key holding dropped writes
    """

    hot_ttl: float = 5 * 60
    warm_ttl: float = 30 * 60
    cold_ttl: float = 24 * 60 * 60
    max_memory_bytes: int = 50 * MIB

    max_sync_attempts: int = 3

    hot_cache_max_bytes: int = 10 * MIB
    hot_cache_cooldown: float = 5 * 60

    sync_interval: float = 30.0
    sync_on_failure: bool = True

    local_backend: str = "file"
    local_path: str | None = None
    sqlite_path: str | None = None

    remote_url: str | None = None
    remote_api_key: str | None = None
    remote_timeout: float = 10.0

    cache_prefix: str = "cache_"
    queue_key: str = "@neurolearn/sync_queue"
    dead_letter_key: str = "@neurolearn/sync_dead_letter"

    options: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check budgets, TTL ordering and backend names.

        Raises:
            ConfigurationError: If any value is out of range
        """
        if not 0 < self.hot_ttl < self.warm_ttl < self.cold_ttl:
            raise ConfigurationError(
                "ttl",
                "expected 0 < hot_ttl < warm_ttl < cold_ttl",
                f"{self.hot_ttl}/{self.warm_ttl}/{self.cold_ttl}",
            )
        if self.max_memory_bytes <= 0:
            raise ConfigurationError("max_memory_bytes", "must be positive")
        if self.max_sync_attempts < 1:
            raise ConfigurationError("max_sync_attempts", "must be >= 1")
        if self.local_backend not in _LOCAL_BACKENDS:
            raise ConfigurationError(
                "local_backend",
                f"must be one of {', '.join(_LOCAL_BACKENDS)}",
                self.local_backend,
            )

    @property
    def resolved_local_path(self) -> Path:
        """Directory used by the file store, defaulting to ~/.neurolearn/storage."""
        if self.local_path:
            return Path(self.local_path)
        return Path.home() / ".neurolearn" / "storage"

    @property
    def resolved_sqlite_path(self) -> Path:
        if self.sqlite_path:
            return Path(self.sqlite_path)
        return self.resolved_local_path / "storage.db"

    @classmethod
    def from_environment(cls) -> StorageConfig:
        """Create configuration from environment variables.

        Returns:
            StorageConfig populated from environment variables

        Raises:
            ConfigurationError: If a numeric variable cannot be parsed
        """
        kwargs: dict[str, Any] = {
            "local_backend": os.environ.get("NEUROLEARN_LOCAL_BACKEND", "file").lower(),
            "local_path": os.environ.get("NEUROLEARN_LOCAL_PATH"),
            "sqlite_path": os.environ.get("NEUROLEARN_SQLITE_PATH"),
            "remote_url": os.environ.get("NEUROLEARN_REMOTE_URL"),
            "remote_api_key": os.environ.get("NEUROLEARN_REMOTE_API_KEY"),
        }

        timeout = os.environ.get("NEUROLEARN_REMOTE_TIMEOUT")
        if timeout:
            kwargs["remote_timeout"] = _parse_number("remote_timeout", timeout, float)

        memory_mb = os.environ.get("NEUROLEARN_MAX_MEMORY_MB")
        if memory_mb:
            kwargs["max_memory_bytes"] = int(
                _parse_number("max_memory_bytes", memory_mb, float) * MIB
            )

        interval = os.environ.get("NEUROLEARN_SYNC_INTERVAL")
        if interval:
            kwargs["sync_interval"] = _parse_number("sync_interval", interval, float)

        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: Path) -> StorageConfig:
        """Load configuration from the ``storage`` section of a YAML file.

        ```yaml
        storage:
          local_backend: sqlite
          sqlite_path: ~/.neurolearn/storage.db
          remote_url: https://api.example.com/v1
          warm_ttl: 1800
          max_memory_bytes: 52428800
        ```

        A missing file or missing section yields the defaults.
        Unknown keys are collected into ``options``.
        """
        if not path.exists():
            return cls()

        try:
            with open(path) as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError("storage", f"unreadable YAML: {e}", str(path)) from e

        section = raw.get("storage") or {}
        if not isinstance(section, dict):
            raise ConfigurationError("storage", "section must be a mapping", str(path))

        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        options: dict[str, Any] = {}
        for key, value in section.items():
            if key in known and key != "options":
                kwargs[key] = value
            else:
                options[key] = value
        for key in ("local_path", "sqlite_path"):
            if kwargs.get(key):
                kwargs[key] = str(Path(kwargs[key]).expanduser())
        kwargs["options"] = options
        return cls(**kwargs)


def _parse_number(name: str, raw: str, kind: type) -> Any:
    try:
        return kind(raw)
    except ValueError as e:
        raise ConfigurationError(name, "not a number", raw) from e
