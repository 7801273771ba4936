"""
Study data accessor.

Binds each data domain (settings, flashcards, logic nodes, ...) to a fixed
cache key and remote collection, and routes every read and write through
the hybrid sync orchestrator.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, fields, replace
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from ..cache.types import CacheTier
from ..codec import Codec, list_codec, record_codec
from ..remote.base import RemoteStore
from ..stores.base import KeyValueStore
from ..sync.orchestrator import HybridSyncOrchestrator, StorageInfo, SyncResult
from .models import (
    FocusSession,
    Flashcard,
    LogicNode,
    ReadingSession,
    Settings,
    SoundSettings,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

EXPORT_VERSION = "2.1.0"


def cache_key_for(collection: str) -> str:
    return f"@neurolearn/cache_{collection}"


@dataclass(frozen=True)
class DomainBinding(Generic[T]):
    """Everything needed to move one domain between remote, cache and queue."""

    collection: str
    codec: Codec[T]
    default: Callable[[], T]
    tier: CacheTier = CacheTier.WARM

    @property
    def cache_key(self) -> str:
        return cache_key_for(self.collection)


SETTINGS = DomainBinding("settings", record_codec(Settings), Settings, CacheTier.HOT)
SOUND_SETTINGS = DomainBinding("sound_settings", record_codec(SoundSettings), SoundSettings)
FLASHCARDS = DomainBinding("flashcards", list_codec(Flashcard), list)
LOGIC_NODES = DomainBinding("logic_nodes", list_codec(LogicNode), list)
FOCUS_SESSIONS = DomainBinding("focus_sessions", list_codec(FocusSession), list)
READING_SESSIONS = DomainBinding("reading_sessions", list_codec(ReadingSession), list, CacheTier.COLD)

ALL_DOMAINS: tuple[DomainBinding[Any], ...] = (
    SETTINGS,
    SOUND_SETTINGS,
    FLASHCARDS,
    LOGIC_NODES,
    FOCUS_SESSIONS,
    READING_SESSIONS,
)

_EDITABLE_NODE_FIELDS = {f.name for f in fields(LogicNode)} - {"id", "created", "modified"}


class StudyDataStorage:
    """Typed entry point for the app's study data.

    Reads never raise: they degrade to the cache and then to the domain
    default. Writes never raise: failed remote saves are queued.

    Example:
        >>> async with create_study_storage(config) as storage:
        ...     cards = await storage.get_flashcards()
        ...     await storage.save_flashcards(cards + [new_card])
    """

    def __init__(
        self,
        orchestrator: HybridSyncOrchestrator,
        remote: RemoteStore,
        stores: list[KeyValueStore] | None = None,
    ) -> None:
        """Initialize the accessor and register every domain's sync handler.

        Args:
            orchestrator: Hybrid sync orchestrator
            remote: Remote authoritative store
            stores: Local stores to close on close()
        """
        self.orchestrator = orchestrator
        self.remote = remote
        self._stores = stores or []

        for binding in ALL_DOMAINS:
            self.orchestrator.register_handler(
                binding.cache_key, self._remote_saver(binding), binding.codec
            )
        self.orchestrator.set_connectivity_probe(lambda: self.remote.fetch(SETTINGS.collection))

    # Generic domain plumbing

    def _remote_saver(self, binding: DomainBinding[T]) -> Callable[[T], Any]:
        async def save(value: T) -> None:
            await self.remote.save(binding.collection, binding.codec.encode(value))

        return save

    async def _fetch(self, binding: DomainBinding[T]) -> T:
        data = await self.remote.fetch(binding.collection)
        if data is None:
            return binding.default()
        return binding.codec.decode(data)

    async def _get(self, binding: DomainBinding[T]) -> T:
        return await self.orchestrator.hybrid_get(
            lambda: self._fetch(binding),
            binding.cache_key,
            binding.default(),
            codec=binding.codec,
            tier=binding.tier,
        )

    async def _save(self, binding: DomainBinding[T], value: T) -> None:
        await self.orchestrator.hybrid_set(
            self._remote_saver(binding),
            binding.cache_key,
            value,
            codec=binding.codec,
            tier=binding.tier,
        )

    # Settings

    async def get_settings(self) -> Settings:
        return await self._get(SETTINGS)

    async def save_settings(self, settings: Settings) -> None:
        await self._save(SETTINGS, settings)

    async def get_sound_settings(self) -> SoundSettings:
        return await self._get(SOUND_SETTINGS)

    async def save_sound_settings(self, settings: SoundSettings) -> None:
        await self._save(SOUND_SETTINGS, settings)

    async def reset_sound_settings(self) -> None:
        """Drop the cached sound profile and save the defaults."""
        await self.orchestrator.cache.delete(SOUND_SETTINGS.cache_key)
        await self._save(SOUND_SETTINGS, SoundSettings())

    # Flashcards

    async def get_flashcards(self) -> list[Flashcard]:
        return await self._get(FLASHCARDS)

    async def save_flashcards(self, flashcards: list[Flashcard]) -> None:
        await self._save(FLASHCARDS, flashcards)

    # Logic nodes

    async def get_logic_nodes(self) -> list[LogicNode]:
        return await self._get(LOGIC_NODES)

    async def save_logic_nodes(self, nodes: list[LogicNode]) -> None:
        await self._save(LOGIC_NODES, nodes)

    async def add_logic_node(self, **values: Any) -> LogicNode:
        """Create a node with a local id and append it to the collection."""
        node = LogicNode.new(**values)
        nodes = await self.get_logic_nodes()
        await self.save_logic_nodes([*nodes, node])
        return node

    async def update_logic_node(self, node_id: str, **updates: Any) -> LogicNode | None:
        """Apply field updates to one node.

        Returns:
            The updated node, or None if no node has that id
        """
        nodes = await self.get_logic_nodes()
        for index, node in enumerate(nodes):
            if node.id == node_id:
                allowed = {k: v for k, v in updates.items() if k in _EDITABLE_NODE_FIELDS}
                updated = replace(node, **allowed, modified=datetime.now(UTC))
                nodes[index] = updated
                await self.save_logic_nodes(nodes)
                return updated
        return None

    # Focus sessions

    async def get_focus_sessions(self) -> list[FocusSession]:
        return await self._get(FOCUS_SESSIONS)

    async def save_focus_sessions(self, sessions: list[FocusSession]) -> None:
        await self._save(FOCUS_SESSIONS, sessions)

    async def save_focus_session(self, session: FocusSession) -> None:
        """Append one session, replacing any session with the same id."""
        sessions = [s for s in await self.get_focus_sessions() if s.id != session.id]
        await self.save_focus_sessions([*sessions, session])

    async def get_focus_session(self, session_id: str) -> FocusSession | None:
        for session in await self.get_focus_sessions():
            if session.id == session_id:
                return session
        return None

    # Reading sessions

    async def get_reading_sessions(self) -> list[ReadingSession]:
        return await self._get(READING_SESSIONS)

    async def save_reading_sessions(self, sessions: list[ReadingSession]) -> None:
        await self._save(READING_SESSIONS, sessions)

    async def save_reading_session(self, session: ReadingSession) -> None:
        sessions = [s for s in await self.get_reading_sessions() if s.id != session.id]
        await self.save_reading_sessions([*sessions, session])

    # Generic local values

    async def get(self, key: str, default: Any = None) -> Any:
        return await self.orchestrator.get(key, default)

    async def set(self, key: str, value: Any, tier: CacheTier = CacheTier.WARM) -> None:
        await self.orchestrator.set(key, value, tier)

    # Export, diagnostics, maintenance

    async def export_all_data(self) -> str:
        """Export every domain as one JSON document.

        Uses the remote store when reachable and the cache otherwise.
        """
        payload: dict[str, Any] = {}
        for binding in ALL_DOMAINS:
            value = await self._get(binding)
            payload[binding.collection] = binding.codec.encode(value)
        payload["export_date"] = datetime.now(UTC).isoformat()
        payload["version"] = EXPORT_VERSION
        return json.dumps(payload, indent=2)

    async def get_storage_info(self) -> StorageInfo:
        return await self.orchestrator.get_storage_info()

    async def background_sync(self) -> SyncResult:
        return await self.orchestrator.background_sync()

    async def clear_all_data(self) -> None:
        await self.orchestrator.clear_all_data()

    async def start(self, periodic: bool = True) -> None:
        await self.orchestrator.start(periodic=periodic)

    async def close(self) -> None:
        """Stop background work, then close the remote and local stores."""
        await self.orchestrator.close()
        await self.remote.close()
        for store in self._stores:
            await store.close()

    async def __aenter__(self) -> StudyDataStorage:
        await self.start()
        return self

    async def __aexit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        await self.close()
