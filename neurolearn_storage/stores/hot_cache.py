"""
Hot cache store with health tracking.

Serves reads from a fast, capacity-limited store while it is healthy and
writes through to a durable store, so nothing is lost across restarts.
When the fast store reports it is full (or fails outright) it is marked
unhealthy for a cooldown window and every operation falls back to the
durable store until the window passes.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from ..exceptions import CapacityExceededError
from .base import KeyValueStore

logger = logging.getLogger(__name__)


class HotCacheStore(KeyValueStore):
    """Fast store in front of a durable fallback.

    Health model:
    - HEALTHY: reads try the fast store then the fallback; writes go to both
    - UNHEALTHY (until ``cooldown`` elapses): everything goes to the fallback,
      and writes evict the fast copy so it cannot resurface stale
    """

    name = "hot_cache"

    def __init__(
        self,
        fast: KeyValueStore,
        fallback: KeyValueStore,
        cooldown: float = 5 * 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.fast = fast
        self.fallback = fallback
        self.cooldown = cooldown
        self._clock = clock
        self._unhealthy_until: float | None = None
        self._total_trips = 0

    def is_available(self) -> bool:
        """True when the fast store may be used."""
        if self._unhealthy_until is None:
            return True
        if self._clock() >= self._unhealthy_until:
            self._unhealthy_until = None
            logger.info("Hot cache cooldown elapsed, fast store re-enabled")
            return True
        return False

    def mark_unhealthy(self, cooldown: float | None = None) -> None:
        """Bypass the fast store for ``cooldown`` seconds."""
        window = self.cooldown if cooldown is None else cooldown
        self._unhealthy_until = self._clock() + window
        self._total_trips += 1
        logger.warning(f"Hot cache marked unhealthy for {window:.0f}s (trip #{self._total_trips})")

    async def get(self, key: str) -> str | None:
        if self.is_available():
            try:
                value = await self.fast.get(key)
                if value is not None:
                    return value
            except Exception as e:
                logger.warning(f"Hot cache read failed for {key}, using fallback: {e}")
        return await self.fallback.get(key)

    async def set(self, key: str, value: str) -> None:
        written = False
        if self.is_available():
            try:
                await self.fast.set(key, value)
                written = True
            except CapacityExceededError as e:
                logger.warning(f"Hot cache full while writing {key}: {e}")
                self.mark_unhealthy()
            except Exception as e:
                logger.warning(f"Hot cache write failed for {key}, using fallback: {e}")
                self.mark_unhealthy()

        if not written:
            # The fast store must never hold an older copy than the fallback
            try:
                await self.fast.remove(key)
            except Exception as e:
                logger.warning(f"Hot cache delete failed for {key}: {e}")
        await self.fallback.set(key, value)

    async def remove(self, key: str) -> None:
        try:
            await self.fast.remove(key)
        except Exception as e:
            logger.warning(f"Hot cache delete failed for {key}: {e}")
        await self.fallback.remove(key)

    async def list_keys(self) -> list[str]:
        keys: list[str] = []
        if self.is_available():
            try:
                keys = await self.fast.list_keys()
            except Exception as e:
                logger.warning(f"Hot cache key listing failed: {e}")
        seen = set(keys)
        return keys + [k for k in await self.fallback.list_keys() if k not in seen]

    async def close(self) -> None:
        await self.fast.close()

    def stats(self) -> dict[str, Any]:
        return {
            "available": self.is_available(),
            "total_trips": self._total_trips,
        }
