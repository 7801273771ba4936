"""
Abstract key/value store interface.

Every local tier (durable file/sqlite store, hot cache, in-memory store)
implements this minimal string-to-string contract. There are no
transactions and no ordering guarantees across keys.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class KeyValueStore(ABC):
    """Abstract async key -> string store."""

    name: str = "store"

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored string, or None if the key is absent."""
        ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store a string under key, replacing any previous value.

        Raises:
            StorageIOError: If the write fails
            CapacityExceededError: If a capacity-limited store is full
        """
        ...

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Remove key. Removing an absent key is not an error."""
        ...

    @abstractmethod
    async def list_keys(self) -> list[str]:
        """Return every key currently stored."""
        ...

    async def remove_many(self, keys: list[str]) -> None:
        for key in keys:
            await self.remove(key)

    async def keys_with_prefix(self, prefix: str) -> list[str]:
        return [key for key in await self.list_keys() if key.startswith(prefix)]

    async def clear_prefix(self, prefix: str) -> int:
        """Remove every key starting with prefix.

        Returns:
            Number of keys removed
        """
        keys = await self.keys_with_prefix(prefix)
        await self.remove_many(keys)
        return len(keys)

    async def close(self) -> None:
        """Release resources. Default is a no-op."""
        return None

    async def __aenter__(self) -> KeyValueStore:
        return self

    async def __aexit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        await self.close()
