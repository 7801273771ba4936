"""
File-based durable key/value store.

Each key is one file under the base directory:
- File names are the percent-encoded key plus a ``.val`` suffix
- Writes are atomic (temp file + fsync + rename)
- Reads of an absent file return None; undecodable bytes raise
  CacheCorruptError
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from urllib.parse import quote, unquote

import aiofiles
import aiofiles.os

from ..exceptions import CacheCorruptError, StorageIOError
from .base import KeyValueStore

_SUFFIX = ".val"


class FileStore(KeyValueStore):
    """Durable store keeping one file per key.

    Directory structure:
    {base_path}/
      cache_%40neurolearn%2Fcache_settings.val
      %40neurolearn%2Fsync_queue.val
    """

    name = "file"

    def __init__(self, base_path: Path):
        self.base_path = Path(base_path)

    def _path_for(self, key: str) -> Path:
        return self.base_path / f"{quote(key, safe='')}{_SUFFIX}"

    async def _ensure_directory(self) -> None:
        try:
            await aiofiles.os.makedirs(self.base_path, exist_ok=True)
        except OSError as e:
            raise StorageIOError("create_directory", str(self.base_path), e) from e

    async def get(self, key: str) -> str | None:
        path = self._path_for(key)
        try:
            if not await aiofiles.os.path.exists(path):
                return None
            async with aiofiles.open(path, encoding="utf-8") as f:
                return await f.read()
        except UnicodeDecodeError as e:
            raise CacheCorruptError(key, e) from e
        except OSError as e:
            raise StorageIOError("read", str(path), e) from e

    async def set(self, key: str, value: str) -> None:
        await self._ensure_directory()
        path = self._path_for(key)

        fd, temp_path = tempfile.mkstemp(dir=self.base_path, prefix=".tmp_", suffix=".tmp")
        try:
            os.close(fd)
            async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
                await f.write(value)
                await f.flush()
                os.fsync(f.fileno())

            await aiofiles.os.replace(temp_path, path)
        except Exception as e:
            try:
                await aiofiles.os.remove(temp_path)
            except OSError:
                pass
            raise StorageIOError("write", str(path), e) from e

    async def remove(self, key: str) -> None:
        path = self._path_for(key)
        try:
            if await aiofiles.os.path.exists(path):
                await aiofiles.os.remove(path)
        except OSError as e:
            raise StorageIOError("remove", str(path), e) from e

    async def list_keys(self) -> list[str]:
        try:
            if not await aiofiles.os.path.exists(self.base_path):
                return []
            entries = await aiofiles.os.listdir(self.base_path)
        except OSError as e:
            raise StorageIOError("list", str(self.base_path), e) from e

        return [
            unquote(entry[: -len(_SUFFIX)])
            for entry in sorted(entries)
            if entry.endswith(_SUFFIX) and not entry.startswith(".tmp_")
        ]
