# src/cache/fingerprint.py — v3
"""Deterministic request fingerprint used as the cache key.

Covers model, messages, sampling parameters, image and requested schema.
The request id and anything time-dependent are excluded, so two identical
requests from different callers share one entry.
"""

from __future__ import annotations

import base64
import hashlib
import json
from typing import Any

from chatrelay.llm.models import ChatCompletionOptions, ImageAttachment, ResponseModel


def compute_cache_key(options: ChatCompletionOptions, model: str) -> str:
    """SHA-256 over the canonical JSON of the cacheable request fields."""
    payload = cache_key_payload(options, model)
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def cache_key_payload(options: ChatCompletionOptions, model: str) -> dict[str, Any]:
    """Fields that take part in the fingerprint."""
    return {
        "model": model,
        "messages": [m.model_dump(mode="json") for m in options.messages],
        "temperature": options.temperature,
        "top_p": options.top_p,
        "frequency_penalty": options.frequency_penalty,
        "presence_penalty": options.presence_penalty,
        "image": _image_fingerprint(options.image),
        "response_model": _response_model_fingerprint(options.response_model),
    }


def _image_fingerprint(image: ImageAttachment | None) -> dict[str, Any] | None:
    if image is None:
        return None
    return {
        "buffer": base64.b64encode(image.buffer).decode("ascii"),
        "description": image.description,
        "media_type": image.media_type,
    }


def _response_model_fingerprint(
    response_model: ResponseModel | None,
) -> dict[str, Any] | None:
    if response_model is None:
        return None
    try:
        schema: Any = response_model.schema.model_json_schema()
    except Exception:  # noqa: BLE001
        # Unserializable schemas still need a stable identity.
        cls = response_model.schema
        schema = f"{getattr(cls, '__module__', '')}.{getattr(cls, '__qualname__', cls)}"
    return {"name": response_model.name, "schema": schema}
