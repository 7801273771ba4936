"""
HTTP remote store.

Talks to a JSON document API:
- GET    {base_url}/collections/{name}  -> {"data": ...}  (404: no record)
- PUT    {base_url}/collections/{name}  <- {"data": ...}
- DELETE {base_url}/collections
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import quote

import aiohttp

from ..config import StorageConfig
from ..exceptions import ConfigurationError, RemoteUnavailableError
from .base import RemoteStore

logger = logging.getLogger(__name__)


class HttpRemoteStore(RemoteStore):
    """RemoteStore over aiohttp.

    Timeouts, connection errors and non-2xx responses all surface as
    RemoteUnavailableError. The client session is created lazily and
    reused until close().
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 10.0,
    ) -> None:
        """
        Initialize the HTTP remote store.

        Args:
            base_url: API root, e.g. https://api.example.com/v1
            api_key: Bearer token sent with every request
            timeout: Total seconds allowed per request
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._session: aiohttp.ClientSession | None = None

    @classmethod
    def from_config(cls, config: StorageConfig) -> HttpRemoteStore:
        if not config.remote_url:
            raise ConfigurationError("remote_url", "required for HttpRemoteStore")
        return cls(config.remote_url, config.remote_api_key, config.remote_timeout)

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self._headers(),
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    def _collection_url(self, collection: str) -> str:
        return f"{self.base_url}/collections/{quote(collection, safe='')}"

    async def _request(
        self,
        operation: str,
        method: str,
        url: str,
        payload: Any = None,
        allow_not_found: bool = False,
    ) -> Any:
        session = self._get_session()
        try:
            kwargs: dict[str, Any] = {}
            if payload is not None:
                kwargs["json"] = payload
            async with session.request(method, url, **kwargs) as response:
                if allow_not_found and response.status == 404:
                    return None
                if response.status >= 400:
                    body = await response.text()
                    logger.debug(f"{operation} returned {response.status}: {body[:200]}")
                    raise RemoteUnavailableError(operation, status=response.status)
                if response.status == 204 or response.content_length == 0:
                    return None
                return await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise RemoteUnavailableError(operation, cause=e) from e

    async def fetch(self, collection: str) -> Any:
        body = await self._request(
            f"fetch {collection}",
            "GET",
            self._collection_url(collection),
            allow_not_found=True,
        )
        if body is None:
            return None
        if not isinstance(body, dict):
            raise RemoteUnavailableError(f"fetch {collection}", cause=ValueError("malformed body"))
        return body.get("data")

    async def save(self, collection: str, data: Any) -> None:
        await self._request(
            f"save {collection}",
            "PUT",
            self._collection_url(collection),
            payload={"data": data},
        )

    async def clear_all(self) -> None:
        await self._request("clear_all", "DELETE", f"{self.base_url}/collections")

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
