"""
Encode/decode boundaries between typed domain records and the JSON
documents held by the cache and the sync queue.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar

T = TypeVar("T")
R = TypeVar("R", bound="Record")


class Record(Protocol):
    def to_dict(self) -> dict[str, Any]: ...

    @classmethod
    def from_dict(cls: type[R], data: dict[str, Any]) -> R: ...


@dataclass(frozen=True)
class Codec(Generic[T]):
    """Pair of functions converting a value to and from JSON-compatible data.

    Decoding errors propagate; callers reading cached data treat them as a
    corrupt cache entry.
    """

    encode: Callable[[T], Any]
    decode: Callable[[Any], T]


def _identity(value: Any) -> Any:
    return value


JSON_CODEC: Codec[Any] = Codec(encode=_identity, decode=_identity)


def record_codec(cls: type[R]) -> Codec[R]:
    """Codec for a single dataclass record with to_dict/from_dict."""
    return Codec(encode=lambda record: record.to_dict(), decode=cls.from_dict)


def list_codec(cls: type[R]) -> Codec[list[R]]:
    """Codec for a list of records."""
    return Codec(
        encode=lambda records: [r.to_dict() for r in records],
        decode=lambda items: [cls.from_dict(item) for item in items],
    )
