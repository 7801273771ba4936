"""Typed study data domains and their hybrid accessor."""

from .factory import create_study_storage
from .models import (
    Flashcard,
    FocusSession,
    LogicNode,
    NotificationPrefs,
    ReadingSession,
    Settings,
    SoundSettings,
)
from .service import ALL_DOMAINS, DomainBinding, StudyDataStorage, cache_key_for

__all__ = [
    "StudyDataStorage",
    "create_study_storage",
    "DomainBinding",
    "ALL_DOMAINS",
    "cache_key_for",
    "Settings",
    "NotificationPrefs",
    "SoundSettings",
    "Flashcard",
    "LogicNode",
    "FocusSession",
    "ReadingSession",
]
