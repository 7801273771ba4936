"""
Cache entry types.

Entries are persisted as one JSON document per key in the durable tier,
so both directions of the codec live here.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..exceptions import CacheCorruptError, StorageIOError


class CacheTier(Enum):
    """Priority tier of a cache entry.

    HOT: short TTL, memory-resident, persisted through the hot cache store
    WARM: medium TTL, memory-resident, persisted to the durable store
    COLD: long TTL, durable store only
    """

    HOT = "hot"
    WARM = "warm"
    COLD = "cold"

    @property
    def memory_resident(self) -> bool:
        return self is not CacheTier.COLD


@dataclass
class CacheEntry:
    """A cached payload plus its recency metadata.

    Attributes:
        data: JSON-compatible payload
        timestamp: When the entry was created or last refreshed (epoch seconds)
        access_count: Number of reads served from this entry
        last_accessed: When the entry was last read (epoch seconds)
        tier: Priority tier controlling TTL and memory residency
        size: Estimated payload size in bytes
    """

    data: Any
    timestamp: float
    access_count: int
    last_accessed: float
    tier: CacheTier
    size: int = 0

    def touch(self, now: float) -> None:
        self.access_count += 1
        self.last_accessed = now

    def age(self, now: float) -> float:
        return now - self.timestamp

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": self.data,
            "timestamp": self.timestamp,
            "access_count": self.access_count,
            "last_accessed": self.last_accessed,
            "priority": self.tier.value,
            "size": self.size,
        }

    def to_json(self, key: str) -> str:
        try:
            return json.dumps(self.to_dict())
        except (TypeError, ValueError) as e:
            raise StorageIOError("serialize", key, e) from e

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CacheEntry:
        timestamp = float(data["timestamp"])
        return cls(
            data=data["data"],
            timestamp=timestamp,
            access_count=int(data.get("access_count", 1)),
            last_accessed=float(data.get("last_accessed", timestamp)),
            tier=CacheTier(data.get("priority", CacheTier.WARM.value)),
            size=int(data.get("size", 0)),
        )

    @classmethod
    def from_json(cls, key: str, raw: str) -> CacheEntry:
        """Parse a persisted entry.

        Raises:
            CacheCorruptError: If the document is not a valid entry
        """
        try:
            parsed = json.loads(raw)
            if not isinstance(parsed, dict):
                raise ValueError(f"expected object, got {type(parsed).__name__}")
            return cls.from_dict(parsed)
        except (ValueError, KeyError, TypeError) as e:
            raise CacheCorruptError(key, e) from e
