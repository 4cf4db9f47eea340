# src/llm/adapters/anthropic_adapter.py — v4
"""Anthropic Claude adapter implementing BaseLLMClient.

Uses the official anthropic SDK (Messages API). System text is lifted into
the `system` parameter, images become base64 (or url) image blocks, tools
are converted to `input_schema` form and `tool_use` blocks are mapped back
to canonical tool calls. Structured output goes through prompt injection.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

from pydantic import BaseModel

from chatrelay.cache.base_cache_store import BaseCacheStore
from chatrelay.llm.base_client import BaseLLMClient, PreparedRequest
from chatrelay.llm.errors import UpstreamTransportError
from chatrelay.llm.messages import parse_data_uri
from chatrelay.llm.models import (
    ChatCompletionOptions,
    ChatCompletionResponse,
    ChatMessage,
    Choice,
    ChoiceMessage,
    FunctionCall,
    FunctionDefinition,
    ImagePart,
    ToolCall,
    Usage,
)
from chatrelay.llm.pipeline import run_chat_completion
from chatrelay.llm.retry import RetryConfig

logger = logging.getLogger(__name__)

_STOP_REASONS = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "max_tokens": "length",
    "tool_use": "tool_calls",
}


class AnthropicAdapter(BaseLLMClient):
    """Adapter for Anthropic Claude models."""

    def __init__(
        self,
        model: str = "claude-3-5-sonnet-latest",
        api_key: str | None = None,
        base_url: str = "",
        max_tokens_default: int = 4096,
        timeout_s: float | None = None,
        cache: BaseCacheStore | None = None,
        enable_caching: bool = False,
        retry_config: RetryConfig | None = None,
        client: Any = None,
        **kwargs: Any,
    ) -> None:
        self.model = model
        self.cache = cache
        self.enable_caching = enable_caching
        self.retry_config = retry_config
        self._api_key = api_key
        self._base_url = base_url
        self._max_tokens_default = max_tokens_default
        self._timeout_s = timeout_s
        self.__client = client  # Lazy initialization

    @property
    def _client(self):
        """Lazy-init Anthropic client (only on first API call)."""
        if self.__client is None:
            import anthropic

            kwargs: dict[str, Any] = {"api_key": self._api_key or None}
            if self._base_url:
                kwargs["base_url"] = self._base_url
            if self._timeout_s is not None:
                kwargs["timeout"] = self._timeout_s
            self.__client = anthropic.AsyncAnthropic(**kwargs)
        return self.__client

    async def create_chat_completion(
        self,
        options: ChatCompletionOptions,
        retries: int | None = None,
    ) -> ChatCompletionResponse | BaseModel:
        return await run_chat_completion(self, options, retries)

    async def dispatch(self, request: PreparedRequest) -> ChatCompletionResponse:
        """Text/vision completion via Anthropic Messages API."""
        import anthropic

        kwargs = self._build_kwargs(request)
        start = time.monotonic()
        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.AnthropicError as e:
            raise UpstreamTransportError(self.provider_name, e) from e
        latency_ms = int((time.monotonic() - start) * 1000)
        logger.debug("anthropic completion for %s in %dms", request.model, latency_ms)

        return self._to_canonical(response, request.model)

    @property
    def provider_name(self) -> str:
        return "anthropic"

    def native_tools(self, model: str) -> bool:
        return True

    # --- Internal helpers ---

    def _build_kwargs(self, request: PreparedRequest) -> dict[str, Any]:
        options = request.options
        system_parts: list[str] = []
        api_messages: list[dict[str, Any]] = []
        for m in request.messages:
            if m.role == "system":
                system_parts.append(m.text())
                continue
            api_messages.append(self._to_api_message(m))

        kwargs: dict[str, Any] = {
            "model": request.model,
            "max_tokens": options.max_tokens or self._max_tokens_default,
            "messages": api_messages,
        }
        if system_parts:
            kwargs["system"] = "\n\n".join(p for p in system_parts if p)
        if options.temperature is not None:
            kwargs["temperature"] = options.temperature
        if options.top_p is not None:
            kwargs["top_p"] = options.top_p
        if request.tools:
            kwargs["tools"] = [
                self._to_api_tool(t.function) for t in request.tools if t.function is not None
            ]
            if options.tool_choice in ("auto", "any"):
                kwargs["tool_choice"] = {"type": options.tool_choice}
        return kwargs

    @staticmethod
    def _to_api_message(m: ChatMessage) -> dict[str, Any]:
        if isinstance(m.content, str):
            return {"role": m.role, "content": m.content}
        blocks: list[dict[str, Any]] = []
        for p in m.content:
            if isinstance(p, ImagePart):
                blocks.append(_image_block(p.image_url.url))
            else:
                blocks.append({"type": "text", "text": p.text})
        return {"role": m.role, "content": blocks}

    @staticmethod
    def _to_api_tool(fn: FunctionDefinition) -> dict[str, Any]:
        return {
            "name": fn.name,
            "description": fn.description,
            "input_schema": fn.parameters,
        }

    @staticmethod
    def _to_canonical(response: Any, model: str) -> ChatCompletionResponse:
        """Map content blocks, stop_reason and usage to the canonical shape."""
        texts: list[str] = []
        tool_calls: list[ToolCall] = []
        for block in getattr(response, "content", None) or []:
            block_type = getattr(block, "type", None)
            if block_type == "text":
                texts.append(block.text)
            elif block_type == "tool_use":
                tool_calls.append(
                    ToolCall(
                        id=block.id,
                        function=FunctionCall(
                            name=block.name, arguments=json.dumps(block.input)
                        ),
                    )
                )

        usage = getattr(response, "usage", None)
        input_tokens = getattr(usage, "input_tokens", 0) or 0
        output_tokens = getattr(usage, "output_tokens", 0) or 0
        stop_reason = getattr(response, "stop_reason", None)

        return ChatCompletionResponse(
            id=getattr(response, "id", None) or "msg-unknown",
            created=int(time.time()),
            model=getattr(response, "model", None) or model,
            choices=[
                Choice(
                    index=0,
                    message=ChoiceMessage(
                        role="assistant",
                        content="".join(texts) if texts else None,
                        tool_calls=tool_calls,
                    ),
                    finish_reason=_STOP_REASONS.get(stop_reason or "", stop_reason or "stop"),
                )
            ],
            usage=Usage(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            ),
        )


def _image_block(url: str) -> dict[str, Any]:
    parsed = parse_data_uri(url)
    if parsed is None:
        return {"type": "image", "source": {"type": "url", "url": url}}
    media_type, data = parsed
    return {
        "type": "image",
        "source": {"type": "base64", "media_type": media_type, "data": data},
    }
