# src/cache/memory_store.py — v1
"""In-process cache store (CACHE_BACKEND=memory).

Entries live for the lifetime of the process. Safe for concurrent asyncio
tasks: each operation is a single dict access, so concurrent writers to one
key resolve as last writer wins.
"""

from __future__ import annotations

import logging

from chatrelay.cache.base_cache_store import BaseCacheStore
from chatrelay.cache.models import CacheEntry

logger = logging.getLogger(__name__)


class MemoryCacheStore(BaseCacheStore):
    """Dict-backed cache store."""

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    async def get(self, key: str, request_id: str | None = None) -> CacheEntry | None:
        entry = self._entries.get(key)
        logger.debug(
            "memory cache %s key=%s request_id=%s",
            "hit" if entry else "miss", key[:12], request_id,
        )
        return entry

    async def set(
        self, key: str, entry: CacheEntry, request_id: str | None = None
    ) -> None:
        self._entries[key] = entry

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
