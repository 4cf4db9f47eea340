# tests/unit/llm/test_retry.py — v1
"""Tests for llm/retry.py — bounded structured-output retries."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from chatrelay.llm.errors import (
    InvalidResponseSchemaError,
    SchemaParseError,
    SchemaSerializationError,
    SchemaValidationError,
    UpstreamTransportError,
)
from chatrelay.llm.retry import RetryConfig, _compute_delay, classify_error, with_schema_retries


def _failing(error_factory, succeed_on: int | None = None):
    calls: list[int] = []

    async def attempt(n: int):
        calls.append(n)
        if succeed_on is not None and n == succeed_on:
            return "ok"
        raise error_factory()

    return attempt, calls


class TestWithSchemaRetries:
    @pytest.mark.asyncio
    async def test_first_attempt_succeeds(self):
        attempt, calls = _failing(lambda: SchemaParseError("x"), succeed_on=0)
        assert await with_schema_retries(attempt, 3) == "ok"
        assert calls == [0]

    @pytest.mark.asyncio
    async def test_succeeds_after_failures(self):
        attempt, calls = _failing(lambda: SchemaParseError("x"), succeed_on=2)
        assert await with_schema_retries(attempt, 3) == "ok"
        assert calls == [0, 1, 2]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("retries", [0, 1, 3])
    async def test_at_most_retries_plus_one_attempts(self, retries):
        attempt, calls = _failing(lambda: SchemaValidationError("bad"))
        with pytest.raises(InvalidResponseSchemaError) as exc:
            await with_schema_retries(attempt, retries)
        assert len(calls) == retries + 1
        assert exc.value.attempts == retries + 1
        assert len(exc.value.failures) == retries + 1

    @pytest.mark.asyncio
    async def test_parse_error_reraised_verbatim(self):
        error = SchemaParseError("not json")
        attempt, _ = _failing(lambda: error)
        with pytest.raises(SchemaParseError) as exc:
            await with_schema_retries(attempt, 1)
        assert exc.value is error

    @pytest.mark.asyncio
    async def test_serialization_error_reraised(self):
        attempt, calls = _failing(lambda: SchemaSerializationError("nope"))
        with pytest.raises(SchemaSerializationError):
            await with_schema_retries(attempt, 2)
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_transport_error_not_retried(self):
        attempt, calls = _failing(lambda: UpstreamTransportError("openai", OSError("down")))
        with pytest.raises(UpstreamTransportError):
            await with_schema_retries(attempt, 5)
        assert calls == [0]

    @pytest.mark.asyncio
    async def test_sleeps_between_attempts_when_configured(self):
        attempt, _ = _failing(lambda: SchemaParseError("x"), succeed_on=2)
        config = RetryConfig(base_delay_s=0.5, backoff_factor=2.0)
        with patch("chatrelay.llm.retry.asyncio.sleep") as sleep:
            await with_schema_retries(attempt, 3, config=config)
        assert [c.args[0] for c in sleep.call_args_list] == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_no_sleep_by_default(self):
        attempt, _ = _failing(lambda: SchemaParseError("x"), succeed_on=1)
        with patch("chatrelay.llm.retry.asyncio.sleep") as sleep:
            await with_schema_retries(attempt, 1)
        sleep.assert_not_called()


class TestHelpers:
    def test_classify(self):
        assert classify_error(SchemaParseError("x")) == "schema_parse"
        assert classify_error(SchemaValidationError("x")) == "schema_validation"
        assert classify_error(SchemaSerializationError("x")) == "schema_serialization"

    def test_jitter_bounds(self):
        config = RetryConfig(base_delay_s=1.0, backoff_factor=1.0, jitter=True)
        assert 0.5 <= _compute_delay(config, 0) <= 1.5
