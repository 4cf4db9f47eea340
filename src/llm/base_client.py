# src/llm/base_client.py — v2
"""Capability interface implemented once per provider.

Adapters own request shaping and response normalization (`dispatch`).
Caching, schema extraction and retries are provider-agnostic helpers in
`chatrelay.llm.pipeline`, which every adapter's create_chat_completion
delegates to.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel

from chatrelay.cache.base_cache_store import BaseCacheStore
from chatrelay.llm.models import (
    ChatCompletionOptions,
    ChatCompletionResponse,
    ChatMessage,
    ToolDefinition,
)
from chatrelay.llm.retry import RetryConfig

StructuredOutputStrategy = Literal["native", "prompt"]


@dataclass(frozen=True)
class PreparedRequest:
    """One provider request, rebuilt from the original options on every attempt."""

    model: str
    messages: list[ChatMessage]
    options: ChatCompletionOptions
    tools: list[ToolDefinition] = field(default_factory=list)
    # Set only when the schema is passed natively (response_format).
    json_schema: dict[str, Any] | None = None
    schema_name: str | None = None
    # The reply is expected to be a bare JSON document.
    json_mode: bool = False


class BaseLLMClient(ABC):
    """Unified interface for all LLM providers."""

    model: str
    cache: BaseCacheStore | None = None
    enable_caching: bool = False
    retry_config: RetryConfig | None = None

    @abstractmethod
    async def create_chat_completion(
        self,
        options: ChatCompletionOptions,
        retries: int | None = None,
    ) -> ChatCompletionResponse | BaseModel:
        """Chat completion; returns the validated schema instance when
        options.response_model is set."""

    @abstractmethod
    async def dispatch(self, request: PreparedRequest) -> ChatCompletionResponse:
        """Send one request to the provider and normalize the reply."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (openai, anthropic, ollama)."""

    def native_tools(self, model: str) -> bool:
        """Whether tool definitions can be forwarded to the provider as-is."""
        return False

    def structured_output_strategy(self, model: str) -> StructuredOutputStrategy:
        """'native' passes the schema to the provider, 'prompt' injects it."""
        return "prompt"
