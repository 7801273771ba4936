"""
Tiered cache.

Memory tier bounded by an estimated-size budget with LRU eviction, backed
by a durable tier that survives process restarts.
"""

from .manager import TieredCacheManager
from .sizing import estimate_size
from .types import CacheEntry, CacheTier

__all__ = [
    "TieredCacheManager",
    "CacheEntry",
    "CacheTier",
    "estimate_size",
]
