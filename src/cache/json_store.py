# src/cache/json_store.py — v2
"""JSON file-based cache store (default CACHE_BACKEND=json).

Stores one JSON file per fingerprint under CACHE_ROOT. Writes go through a
temporary file and os.replace, so readers never see a partial entry and
concurrent writers to the same key resolve as last writer wins.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from chatrelay.cache.base_cache_store import BaseCacheStore
from chatrelay.cache.models import CacheEntry

logger = logging.getLogger(__name__)


class JsonCacheStore(BaseCacheStore):
    """File-based cache store using JSON files."""

    def __init__(self, cache_root: Path | str) -> None:
        self._root = Path(cache_root).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)

    async def get(self, key: str, request_id: str | None = None) -> CacheEntry | None:
        """Retrieve cache entry by key. Unreadable entries count as a miss."""
        path = self._entry_path(key)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return CacheEntry(**data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(
                "Failed to read cache entry %s (request_id=%s): %s", key, request_id, e
            )
            return None

    async def set(
        self, key: str, entry: CacheEntry, request_id: str | None = None
    ) -> None:
        """Store a cache entry atomically."""
        path = self._entry_path(key)
        fd, tmp_name = tempfile.mkstemp(dir=self._root, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(entry.model_dump_json(indent=2))
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Stored cache entry %s (request_id=%s)", key, request_id)

    async def delete(self, key: str) -> None:
        """Remove a cache entry."""
        self._entry_path(key).unlink(missing_ok=True)

    async def clear(self) -> None:
        """Remove all cache entries."""
        for path in self._root.glob("*.json"):
            path.unlink(missing_ok=True)

    def _entry_path(self, key: str) -> Path:
        """Return file path for a cache key."""
        safe_key = key.replace("/", "_").replace("\\", "_")
        return self._root / f"{safe_key}.json"
