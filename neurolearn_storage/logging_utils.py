"""
Structured JSON logging for the storage engine.

Emits one JSON object per line so connectivity flips and dropped writes
can be shipped to a log collector as-is. Records from ``neurolearn_storage``
loggers carry a ``component`` field (``cache.manager``, ``sync.orchestrator``)
derived from the logger name.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any

ROOT_LOGGER = "neurolearn_storage"

_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}


def _component(logger_name: str) -> str | None:
    prefix = f"{ROOT_LOGGER}."
    if logger_name.startswith(prefix):
        return logger_name[len(prefix):]
    return None


class StructuredJsonFormatter(logging.Formatter):
    """
    Formats records as single-line JSON.

    Fields:
    - timestamp: record creation time, ISO 8601 in UTC
    - level, logger, message
    - component: logger name relative to the package, when applicable
    - exception: formatted traceback, when present
    - any ``extra`` context (cache_key, attempts, ...)
    """

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        component = _component(record.name)
        if component:
            log_obj["component"] = component

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key.startswith("_"):
                continue
            try:
                json.dumps(value)
                log_obj[key] = value
            except (TypeError, ValueError):
                log_obj[key] = str(value)

        return json.dumps(log_obj, default=str)


def configure_structured_logging(
    level: int = logging.INFO,
    logger_name: str | None = ROOT_LOGGER,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """
    Route a logger's output through StructuredJsonFormatter.

    Args:
        level: Logging level (default: INFO)
        logger_name: Logger to configure (default: the package logger; None for root)
        stream: Output stream (default: stdout)

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)
    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(StructuredJsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)
    if logger_name:
        logger.propagate = False

    return logger


def get_storage_logger(name: str) -> logging.Logger:
    """
    Get a logger under the package namespace.

    Args:
        name: Component name (e.g., 'cache', 'sync')

    Returns:
        Logger named 'neurolearn_storage.{name}'
    """
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


class StorageLoggerAdapter(logging.LoggerAdapter):
    """
    Adds fixed storage context (such as ``cache_key``) to every record.

    Per-call ``extra`` wins over the adapter's context.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs
