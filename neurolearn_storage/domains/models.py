"""
Typed study data records.

Each record converts to and from the JSON document stored remotely and in
the cache. Timestamps are ISO 8601 strings on the wire.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field, fields
from datetime import UTC, datetime
from typing import Any


def _now() -> datetime:
    return datetime.now(UTC)


def _parse_dt(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if value is None:
        return _now()
    return datetime.fromisoformat(str(value))


def _known(cls: type, data: dict[str, Any]) -> dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


@dataclass
class NotificationPrefs:
    study_reminders: bool = True
    break_alerts: bool = True
    review_notifications: bool = True


@dataclass
class Settings:
    """User preferences. Also the record fetched by the connectivity probe."""

    theme: str = "dark"
    daily_goal: int = 60
    default_session: str = "pomodoro"
    auto_sync: bool = True
    notifications: NotificationPrefs = field(default_factory=NotificationPrefs)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        values = _known(cls, data)
        notifications = values.pop("notifications", None) or {}
        return cls(notifications=NotificationPrefs(**_known(NotificationPrefs, notifications)), **values)


@dataclass
class SoundSettings:
    volume: float = 0.7
    soundscape: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SoundSettings:
        return cls(**_known(cls, data))


@dataclass
class Flashcard:
    """A flashcard and its spaced-repetition state.

    Scheduling fields are carried as-is; computing them is the caller's job.
    """

    id: str
    front: str
    back: str
    category: str = "general"
    next_review: datetime = field(default_factory=_now)
    created: datetime = field(default_factory=_now)
    interval: int = 1
    ease_factor: float = 2.5
    repetitions: int = 0

    def to_dict(self) -> dict[str, Any]:
        result = asdict(self)
        result["next_review"] = self.next_review.isoformat()
        result["created"] = self.created.isoformat()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Flashcard:
        values = _known(cls, data)
        values["next_review"] = _parse_dt(values.get("next_review"))
        values["created"] = _parse_dt(values.get("created"))
        return cls(**values)


@dataclass
class LogicNode:
    """A logic-training item: two premises, a conclusion, review state."""

    id: str
    question: str = ""
    premise1: str = ""
    premise2: str = ""
    conclusion: str = ""
    type: str = "deductive"
    domain: str = "general"
    difficulty: int = 3
    ease_factor: float = 2.5
    interval: int = 1
    repetitions: int = 0
    total_attempts: int = 0
    correct_attempts: int = 0
    next_review: datetime = field(default_factory=_now)
    created: datetime = field(default_factory=_now)
    modified: datetime = field(default_factory=_now)

    @classmethod
    def new(cls, **values: Any) -> LogicNode:
        """Create a node with a locally generated id."""
        values = {k: v for k, v in _known(cls, values).items() if k != "id"}
        return cls(id=f"logic_{uuid.uuid4().hex[:12]}", **values)

    def to_dict(self) -> dict[str, Any]:
        result = asdict(self)
        for name in ("next_review", "created", "modified"):
            result[name] = getattr(self, name).isoformat()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LogicNode:
        values = _known(cls, data)
        for name in ("next_review", "created", "modified"):
            values[name] = _parse_dt(values.get(name))
        return cls(**values)


@dataclass
class FocusSession:
    id: str
    start_time: datetime
    end_time: datetime | None = None
    duration_minutes: int = 0
    distraction_count: int = 0
    focus_score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        result = asdict(self)
        result["start_time"] = self.start_time.isoformat()
        result["end_time"] = self.end_time.isoformat() if self.end_time else None
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FocusSession:
        values = _known(cls, data)
        values["start_time"] = _parse_dt(values.get("start_time"))
        if values.get("end_time") is not None:
            values["end_time"] = _parse_dt(values["end_time"])
        return cls(**values)


@dataclass
class ReadingSession:
    id: str
    source_title: str = ""
    words_read: int = 0
    words_per_minute: float = 0.0
    comprehension_score: float | None = None
    started: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        result = asdict(self)
        result["started"] = self.started.isoformat()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReadingSession:
        values = _known(cls, data)
        values["started"] = _parse_dt(values.get("started"))
        return cls(**values)
