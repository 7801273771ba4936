"""
SQLite durable key/value store.

A single ``kv`` table in one database file. Ideal when the device keeps
many small records and directory listings get slow.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import aiosqlite

from ..exceptions import StorageIOError
from .base import KeyValueStore

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""


class SQLiteStore(KeyValueStore):
    """Durable store backed by aiosqlite.

    The connection is opened lazily on first use; ``:memory:`` is
    accepted for tests.
    """

    name = "sqlite"

    def __init__(self, db_path: str | Path = ":memory:"):
        self.db_path = db_path
        self.conn: Any = None  # aiosqlite.Connection
        self._init_lock = asyncio.Lock()

    async def initialize(self) -> None:
        if self.conn is not None:
            return
        async with self._init_lock:
            if self.conn is not None:
                return
            if str(self.db_path) != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            try:
                conn = await aiosqlite.connect(str(self.db_path))
                await conn.execute(_CREATE_TABLE_SQL)
                await conn.commit()
            except aiosqlite.Error as e:
                raise StorageIOError("connect", str(self.db_path), e) from e
            self.conn = conn
        logger.debug(f"SQLite store opened at {self.db_path}")

    async def get(self, key: str) -> str | None:
        await self.initialize()
        try:
            async with self.conn.execute("SELECT value FROM kv WHERE key = ?", (key,)) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageIOError("read", key, e) from e
        return row[0] if row else None

    async def set(self, key: str, value: str) -> None:
        await self.initialize()
        try:
            await self.conn.execute(
                "INSERT INTO kv (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )
            await self.conn.commit()
        except aiosqlite.Error as e:
            raise StorageIOError("write", key, e) from e

    async def remove(self, key: str) -> None:
        await self.initialize()
        try:
            await self.conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            await self.conn.commit()
        except aiosqlite.Error as e:
            raise StorageIOError("remove", key, e) from e

    async def remove_many(self, keys: list[str]) -> None:
        if not keys:
            return
        await self.initialize()
        try:
            await self.conn.executemany("DELETE FROM kv WHERE key = ?", [(k,) for k in keys])
            await self.conn.commit()
        except aiosqlite.Error as e:
            raise StorageIOError("remove_many", str(self.db_path), e) from e

    async def list_keys(self) -> list[str]:
        await self.initialize()
        try:
            async with self.conn.execute("SELECT key FROM kv ORDER BY key") as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StorageIOError("list", str(self.db_path), e) from e
        return [row[0] for row in rows]

    async def close(self) -> None:
        if self.conn is not None:
            await self.conn.close()
            self.conn = None
