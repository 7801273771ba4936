"""Remote authoritative store adapters."""

from .base import RemoteStore
from .http import HttpRemoteStore

__all__ = ["RemoteStore", "HttpRemoteStore"]
