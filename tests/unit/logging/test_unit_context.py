# tests/unit/logging/test_context.py — v2
"""Tests for logging/context.py — contextual logging variables."""

from __future__ import annotations

import asyncio

import pytest

from chatrelay.logging.context import (
    clear_context,
    get_context,
    reset_request_context,
    set_request_context,
)


class TestLogContext:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_initial_state(self):
        ctx = get_context()
        assert ctx.request_id is None
        assert ctx.provider is None
        assert ctx.model is None

    def test_set_request_context(self):
        set_request_context("req-1", "openai", "gpt-4o")
        ctx = get_context()
        assert ctx.request_id == "req-1"
        assert ctx.provider == "openai"
        assert ctx.model == "gpt-4o"

    def test_as_dict_filters_none(self):
        set_request_context("req-1")
        d = get_context().as_dict()
        assert d == {"request_id": "req-1"}

    def test_clear(self):
        set_request_context("req-1", "openai", "gpt-4o")
        clear_context()
        assert get_context().as_dict() == {}

    def test_reset_restores_previous(self):
        set_request_context("outer", "openai", "gpt-4o")
        tokens = set_request_context("inner", "ollama", "gemma2:2b")
        assert get_context().request_id == "inner"
        reset_request_context(tokens)
        assert get_context().as_dict() == {
            "request_id": "outer", "provider": "openai", "model": "gpt-4o",
        }

    @pytest.mark.asyncio
    async def test_tasks_are_isolated(self):
        async def worker(rid: str) -> str | None:
            set_request_context(rid)
            await asyncio.sleep(0)
            return get_context().request_id

        results = await asyncio.gather(worker("a"), worker("b"))
        assert results == ["a", "b"]
