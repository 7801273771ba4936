"""Catch-log-continue wrapper for operations whose failure must not propagate."""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def best_effort(
    awaitable: Awaitable[T],
    context: str,
    default: Any = None,
) -> T | Any:
    """Await an operation, logging and absorbing any Exception.

    Cancellation still propagates.

    Args:
        awaitable: Operation to run
        context: Short description for the log line
        default: Value returned when the operation fails

    Returns:
        The operation's result, or default on failure
    """
    try:
        return await awaitable
    except Exception as e:
        logger.warning(f"Best-effort {context} failed: {e}")
        return default
