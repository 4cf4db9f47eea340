# tests/unit/cache/test_fingerprint.py — v1
"""Tests for cache/fingerprint.py — deterministic request fingerprint."""

from __future__ import annotations

from chatrelay.cache.fingerprint import cache_key_payload, compute_cache_key
from chatrelay.llm.models import ChatCompletionOptions, ChatMessage, ImageAttachment


def _options(**kwargs) -> ChatCompletionOptions:
    return ChatCompletionOptions(messages=[ChatMessage(role="user", content="hi")], **kwargs)


class TestComputeCacheKey:
    def test_deterministic(self):
        assert compute_cache_key(_options(), "gpt-4o") == compute_cache_key(_options(), "gpt-4o")

    def test_sha256_hex(self):
        key = compute_cache_key(_options(), "gpt-4o")
        assert len(key) == 64
        int(key, 16)

    def test_model_changes_key(self):
        assert compute_cache_key(_options(), "gpt-4o") != compute_cache_key(_options(), "gpt-4o-mini")

    def test_sampling_changes_key(self):
        assert compute_cache_key(_options(top_p=0.5), "m") != compute_cache_key(_options(), "m")

    def test_image_changes_key(self):
        a = _options(image=ImageAttachment(buffer=b"one"))
        b = _options(image=ImageAttachment(buffer=b"two"))
        assert compute_cache_key(a, "m") != compute_cache_key(b, "m")

    def test_schema_changes_key(self, person_model):
        assert compute_cache_key(_options(response_model=person_model), "m") != compute_cache_key(
            _options(), "m"
        )

    def test_excluded_fields(self):
        a = _options(request_id="a", retries=0, max_tokens=10)
        b = _options(request_id="b", retries=5)
        assert compute_cache_key(a, "m") == compute_cache_key(b, "m")


class TestCacheKeyPayload:
    def test_fields(self, person_model):
        payload = cache_key_payload(_options(response_model=person_model), "m")
        assert set(payload) == {
            "model", "messages", "temperature", "top_p", "frequency_penalty",
            "presence_penalty", "image", "response_model",
        }
        assert payload["response_model"]["name"] == "Person"
