# src/llm/adapters/openai_adapter.py — v2
"""OpenAI-compatible adapter implementing BaseLLMClient.

Uses the official openai SDK. Chat models receive the caller schema natively
(response_format json_schema) and tools as-is. o1-family models accept
neither system messages, sampling parameters, response_format nor tools, so
their schema is injected into the prompt and tool calls are emulated.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from pydantic import BaseModel

from chatrelay.cache.base_cache_store import BaseCacheStore
from chatrelay.llm.base_client import BaseLLMClient, PreparedRequest, StructuredOutputStrategy
from chatrelay.llm.errors import UpstreamTransportError
from chatrelay.llm.messages import openai_tool_dicts
from chatrelay.llm.models import (
    ChatCompletionOptions,
    ChatCompletionResponse,
    ChatMessage,
    ImagePart,
)
from chatrelay.llm.pipeline import run_chat_completion
from chatrelay.llm.retry import RetryConfig

logger = logging.getLogger(__name__)

_REASONING_PREFIXES = ("o1",)


def is_reasoning_model(model: str) -> bool:
    return model.startswith(_REASONING_PREFIXES)


class OpenAIAdapter(BaseLLMClient):
    """OpenAI (and OpenAI-compatible endpoint) adapter."""

    def __init__(
        self,
        model: str = "gpt-4o",
        api_key: str = "",
        base_url: str = "",
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
        self._timeout_s = timeout_s
        self.__client = client

    @property
    def _client(self):
        """Lazy-init AsyncOpenAI client (only on first API call)."""
        if self.__client is None:
            import openai

            kwargs: dict[str, Any] = {"api_key": self._api_key or None}
            if self._base_url:
                kwargs["base_url"] = self._base_url
            if self._timeout_s is not None:
                kwargs["timeout"] = self._timeout_s
            self.__client = openai.AsyncOpenAI(**kwargs)
        return self.__client

    async def create_chat_completion(
        self,
        options: ChatCompletionOptions,
        retries: int | None = None,
    ) -> ChatCompletionResponse | BaseModel:
        return await run_chat_completion(self, options, retries)

    async def dispatch(self, request: PreparedRequest) -> ChatCompletionResponse:
        import openai

        body = self._build_body(request)
        t0 = time.monotonic()
        try:
            resp = await self._client.chat.completions.create(**body)
        except openai.OpenAIError as e:
            raise UpstreamTransportError(self.provider_name, e) from e
        latency = int((time.monotonic() - t0) * 1000)

        logger.debug("openai completion for %s in %dms", request.model, latency)
        return self._to_canonical(resp, request.model)

    @property
    def provider_name(self) -> str:
        return "openai"

    def native_tools(self, model: str) -> bool:
        return not is_reasoning_model(model)

    def structured_output_strategy(self, model: str) -> StructuredOutputStrategy:
        return "prompt" if is_reasoning_model(model) else "native"

    # --- Internal helpers ---

    def _build_body(self, request: PreparedRequest) -> dict[str, Any]:
        options = request.options
        reasoning = is_reasoning_model(request.model)
        body: dict[str, Any] = {
            "model": request.model,
            "messages": [self._to_api_message(m, reasoning) for m in request.messages],
        }
        if not reasoning:
            for name in ("temperature", "top_p", "frequency_penalty", "presence_penalty"):
                value = getattr(options, name)
                if value is not None:
                    body[name] = value
        if options.max_tokens is not None:
            key = "max_completion_tokens" if reasoning else "max_tokens"
            body[key] = options.max_tokens
        if request.json_schema is not None:
            body["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": request.schema_name, "schema": request.json_schema},
            }
        if request.tools:
            body["tools"] = openai_tool_dicts(request.tools)
            if options.tool_choice:
                body["tool_choice"] = options.tool_choice
        return body

    @staticmethod
    def _to_api_message(m: ChatMessage, reasoning: bool) -> dict[str, Any]:
        # o1-family models reject the system role.
        role = "user" if reasoning and m.role == "system" else m.role
        if isinstance(m.content, str):
            return {"role": role, "content": m.content}
        parts: list[dict[str, Any]] = []
        for p in m.content:
            if isinstance(p, ImagePart):
                parts.append({"type": "image_url", "image_url": {"url": p.image_url.url}})
            else:
                parts.append({"type": "text", "text": p.text})
        return {"role": role, "content": parts}

    @staticmethod
    def _to_canonical(resp: Any, model: str) -> ChatCompletionResponse:
        data = resp.model_dump() if hasattr(resp, "model_dump") else dict(resp)
        data["created"] = data.get("created") or int(time.time())
        data["model"] = data.get("model") or model
        data["id"] = data.get("id") or "chatcmpl-unknown"
        return ChatCompletionResponse.model_validate(data)
