"""
Offline-first synchronization.

- SyncQueue: durable FIFO of writes that failed remote delivery
- DeadLetterStore: writes dropped after exhausting their retry budget
- HybridSyncOrchestrator: remote-first reads/writes with cache fallback
"""

from .best_effort import best_effort
from .orchestrator import HybridSyncOrchestrator, StorageInfo, SyncResult
from .queue import DeadLetterStore, SyncQueue, SyncQueueItem

__all__ = [
    "HybridSyncOrchestrator",
    "SyncResult",
    "StorageInfo",
    "SyncQueue",
    "SyncQueueItem",
    "DeadLetterStore",
    "best_effort",
]
