"""In-process key/value store with an optional byte capacity."""

from __future__ import annotations

from ..exceptions import CapacityExceededError
from .base import KeyValueStore


class MemoryStore(KeyValueStore):
    """Dict-backed store.

    With ``capacity_bytes`` set it behaves like a capacity-limited hot
    store: a write that would push the stored total past the capacity
    raises CapacityExceededError and leaves the store unchanged.
    """

    def __init__(self, capacity_bytes: int | None = None, name: str = "memory"):
        self.name = name
        self.capacity_bytes = capacity_bytes
        self._data: dict[str, str] = {}
        self._used = 0

    @staticmethod
    def _cost(key: str, value: str) -> int:
        return len(key.encode("utf-8")) + len(value.encode("utf-8"))

    @property
    def used_bytes(self) -> int:
        return self._used

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        new_cost = self._cost(key, value)
        old = self._data.get(key)
        old_cost = self._cost(key, old) if old is not None else 0
        projected = self._used - old_cost + new_cost
        if self.capacity_bytes is not None and projected > self.capacity_bytes:
            raise CapacityExceededError(self.name, projected, self.capacity_bytes)
        self._data[key] = value
        self._used = projected

    async def remove(self, key: str) -> None:
        old = self._data.pop(key, None)
        if old is not None:
            self._used -= self._cost(key, old)

    async def list_keys(self) -> list[str]:
        return list(self._data)
