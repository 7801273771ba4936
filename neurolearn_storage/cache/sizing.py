"""
Payload size estimation for the memory budget.

This is a heuristic, not a contract: large lists are sampled and
extrapolated instead of serialized in full.
"""

from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

SAMPLE_ITEMS = 5
MIN_LIST_ESTIMATE = 256
FALLBACK_ESTIMATE = 1024


def _encoded_len(data: Any) -> int:
    return len(json.dumps(data, default=str).encode("utf-8"))


def estimate_size(data: Any) -> int:
    """
    Estimate the serialized size of a payload in bytes.

    - A mapping with an integer ``__size`` hint reports that hint
    - A list or tuple longer than SAMPLE_ITEMS is sized from its first
      SAMPLE_ITEMS items, scaled to the full length (never below
      MIN_LIST_ESTIMATE)
    - Anything else is serialized once and measured

    Args:
        data: JSON-compatible payload

    Returns:
        Estimated size in bytes (always positive)
    """
    try:
        if isinstance(data, dict) and isinstance(data.get("__size"), int):
            return max(1, data["__size"])

        if isinstance(data, (list, tuple)) and len(data) > SAMPLE_ITEMS:
            sample = list(data[:SAMPLE_ITEMS])
            per_item = _encoded_len(sample) / len(sample)
            return max(MIN_LIST_ESTIMATE, int(per_item * len(data)))

        return max(1, _encoded_len(data))
    except (TypeError, ValueError) as e:
        logger.debug(f"Size estimate fell back to {FALLBACK_ESTIMATE} bytes: {e}")
        return FALLBACK_ESTIMATE
