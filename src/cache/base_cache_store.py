# src/cache/base_cache_store.py — v2
"""Abstract cache store interface (the cache port used by every client).

Lookups and stores are keyed by the request fingerprint only; request_id is
carried for log correlation. A miss returns None and is never an error.
Implementations must tolerate concurrent callers; last writer wins.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from chatrelay.cache.models import CacheEntry


class BaseCacheStore(ABC):
    """Unified interface for cache storage backends."""

    @abstractmethod
    async def get(self, key: str, request_id: str | None = None) -> CacheEntry | None:
        """Retrieve cache entry by fingerprint key."""

    @abstractmethod
    async def set(
        self, key: str, entry: CacheEntry, request_id: str | None = None
    ) -> None:
        """Store cache entry."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove cache entry."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove all entries."""
