"""
Remote authoritative store interface.

The remote store holds the canonical record of each data domain
("collection"). Implementations raise RemoteUnavailableError for every
failure so callers can treat them uniformly as "offline".
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class RemoteStore(ABC):
    """Abstract per-collection fetch/save interface."""

    @abstractmethod
    async def fetch(self, collection: str) -> Any:
        """Fetch the canonical record of a collection.

        Returns:
            The stored JSON payload, or None if the collection has no record

        Raises:
            RemoteUnavailableError: If the store cannot be reached
        """
        ...

    @abstractmethod
    async def save(self, collection: str, data: Any) -> None:
        """Replace the canonical record of a collection.

        Raises:
            RemoteUnavailableError: If the store cannot be reached
        """
        ...

    @abstractmethod
    async def clear_all(self) -> None:
        """Delete every collection owned by the current user.

        Raises:
            RemoteUnavailableError: If the store cannot be reached
        """
        ...

    async def close(self) -> None:
        """Close connections. Default is a no-op."""
        return None

    async def __aenter__(self) -> RemoteStore:
        return self

    async def __aexit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        await self.close()
