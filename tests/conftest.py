# tests/conftest.py — v2
"""Shared test fixtures for all unit tests.

Provides fake provider SDK clients, sample options and schemas, and
scripted reply builders. No network I/O: every SDK call is an AsyncMock.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import BaseModel

from chatrelay.cache.memory_store import MemoryCacheStore
from chatrelay.config.settings import Settings
from chatrelay.llm.models import (
    ChatCompletionOptions,
    ChatMessage,
    FunctionDefinition,
    ImageAttachment,
    ResponseModel,
    ToolDefinition,
)
from chatrelay.logging.context import clear_context


# === Sample schemas ===


class Person(BaseModel):
    name: str
    age: int


# === Reply builders ===


def openai_reply(content: str | None = "Hello!", **overrides: Any) -> dict[str, Any]:
    """OpenAI chat.completions payload (dict form accepted by the adapter)."""
    reply: dict[str, Any] = {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "gpt-4o",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content, "tool_calls": None},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    }
    reply.update(overrides)
    return reply


def ollama_reply(content: str = "Hello!", **overrides: Any) -> dict[str, Any]:
    """ollama ChatResponse payload (dict form)."""
    reply: dict[str, Any] = {
        "model": "gemma2:2b",
        "created_at": "2024-10-01T12:00:00.000000Z",
        "message": {"role": "assistant", "content": content},
        "done": True,
        "done_reason": "stop",
        "prompt_eval_count": 12,
        "eval_count": 4,
    }
    reply.update(overrides)
    return reply


def anthropic_reply(
    blocks: list[Any] | None = None, stop_reason: str = "end_turn"
) -> SimpleNamespace:
    """anthropic Message-like object."""
    if blocks is None:
        blocks = [SimpleNamespace(type="text", text="Hello!")]
    return SimpleNamespace(
        id="msg_test",
        model="claude-3-5-sonnet-latest",
        content=blocks,
        stop_reason=stop_reason,
        usage=SimpleNamespace(input_tokens=20, output_tokens=7),
    )


# === FIXTURES: Fake SDK clients ===


@pytest.fixture
def replies() -> SimpleNamespace:
    """Reply builders: replies.openai(...), replies.anthropic(...), replies.ollama(...)."""
    return SimpleNamespace(openai=openai_reply, anthropic=anthropic_reply, ollama=ollama_reply)


@pytest.fixture
def fake_openai_client() -> MagicMock:
    """AsyncOpenAI stand-in; set .chat.completions.create.side_effect per test."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=openai_reply())
    return client


@pytest.fixture
def fake_anthropic_client() -> MagicMock:
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=anthropic_reply())
    return client


@pytest.fixture
def fake_ollama_client() -> MagicMock:
    client = MagicMock()
    client.chat = AsyncMock(return_value=ollama_reply())
    return client


# === FIXTURES: Sample data ===


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None, cache_root=tmp_path / "cache")


@pytest.fixture
def memory_cache() -> MemoryCacheStore:
    return MemoryCacheStore()


@pytest.fixture
def sample_options() -> ChatCompletionOptions:
    return ChatCompletionOptions(
        messages=[
            ChatMessage(role="system", content="You are terse."),
            ChatMessage(role="user", content="Say hello."),
        ],
        temperature=0.2,
        request_id="req-1",
    )


@pytest.fixture
def person_model() -> ResponseModel:
    return ResponseModel(name="Person", schema=Person)


@pytest.fixture
def weather_tool() -> ToolDefinition:
    return ToolDefinition(
        function=FunctionDefinition(
            name="get_weather",
            description="Current weather for a city",
            parameters={
                "type": "object",
                "properties": {"city": {"type": "string"}},
                "required": ["city"],
            },
        )
    )


@pytest.fixture
def sample_image() -> ImageAttachment:
    return ImageAttachment(buffer=b"\x89PNG fake", description="A screenshot")


@pytest.fixture(autouse=True)
def _reset_log_context():
    clear_context()
    yield
    clear_context()
