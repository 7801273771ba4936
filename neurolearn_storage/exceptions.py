"""
Custom exceptions for study data storage.

Adapters raise these so the cache manager and the sync orchestrator
can recover from failures uniformly, whatever store produced them.
"""


class StorageError(Exception):
    """Base exception for all storage errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class RemoteUnavailableError(StorageError):
    """Raised when the remote authoritative store cannot be reached.

    Covers network failures, timeouts, auth rejections and server errors.
    The orchestrator treats all of them as "offline".
    """

    def __init__(
        self,
        operation: str,
        status: int | None = None,
        cause: Exception | None = None,
    ):
        details: dict = {"operation": operation}
        if status is not None:
            details["status"] = status
        if cause:
            details["cause"] = str(cause)
        message = f"Remote store unavailable during {operation}"
        if status is not None:
            message += f" (HTTP {status})"
        super().__init__(message, details)
        self.operation = operation
        self.status = status
        self.cause = cause


class CacheCorruptError(StorageError):
    """Raised when a stored payload fails to decode or deserialize."""

    def __init__(self, key: str, cause: Exception | None = None):
        details = {"key": key}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Corrupt cache entry: {key}", details)
        self.key = key
        self.cause = cause


class CapacityExceededError(StorageError):
    """Raised when a capacity-limited store cannot accept a write."""

    def __init__(self, store: str, needed: int, capacity: int):
        details = {"store": store, "needed": needed, "capacity": capacity}
        super().__init__(
            f"Store {store} is full: need {needed} bytes, capacity {capacity} bytes",
            details,
        )
        self.store = store
        self.needed = needed
        self.capacity = capacity


class QueueExhaustedError(StorageError):
    """Describes a queued write that ran out of retry attempts.

    Never raised past the orchestrator; handed to the dead-letter store
    and the ``on_drop`` callback instead.
    """

    def __init__(self, key: str, attempts: int, cause: Exception | None = None):
        details: dict = {"key": key, "attempts": attempts}
        if cause:
            details["cause"] = str(cause)
        super().__init__(
            f"Sync item {key} dropped after {attempts} failed attempts",
            details,
        )
        self.key = key
        self.attempts = attempts
        self.cause = cause


class StorageIOError(StorageError):
    """Raised when a local storage I/O operation fails."""

    def __init__(self, operation: str, path: str | None = None, cause: Exception | None = None):
        details = {"operation": operation}
        if path:
            details["path"] = path
        if cause:
            details["cause"] = str(cause)
        message = f"Storage I/O error during {operation}"
        if path:
            message += f": {path}"
        super().__init__(message, details)
        self.operation = operation
        self.path = path
        self.cause = cause


class ConfigurationError(StorageError):
    """Raised when storage configuration is invalid."""

    def __init__(self, field: str, reason: str, value: str | None = None):
        details = {"field": field, "reason": reason}
        if value is not None:
            details["value"] = value
        super().__init__(f"Invalid configuration for {field}: {reason}", details)
        self.field = field
        self.reason = reason
        self.value = value
