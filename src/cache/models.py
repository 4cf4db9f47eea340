# src/cache/models.py — v3
"""Cache domain model: CacheEntry."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class CacheEntry(BaseModel):
    """Cached completion result, keyed by request fingerprint.

    `value` holds either a dumped ChatCompletionResponse (kind="response")
    or a dumped structured payload (kind="structured"), which may be any
    JSON value. Stores never look inside it.
    """

    model_config = ConfigDict(protected_namespaces=())

    key: str
    kind: Literal["response", "structured"]
    value: Any
    model: str
    request_id: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
