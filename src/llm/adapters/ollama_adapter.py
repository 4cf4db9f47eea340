# src/llm/adapters/ollama_adapter.py — v2
"""Ollama local adapter implementing BaseLLMClient.

Uses the ollama Python SDK (AsyncClient). Messages are flattened to text,
user images travel in the base64 `images` list and structured output is
requested with `format="json"` plus the schema injected into the prompt.
Tool calls are emulated unless native tools are enabled for the server.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from datetime import datetime
from typing import Any

import httpx
from pydantic import BaseModel

from chatrelay.cache.base_cache_store import BaseCacheStore
from chatrelay.llm.base_client import BaseLLMClient, PreparedRequest
from chatrelay.llm.errors import UpstreamTransportError
from chatrelay.llm.messages import openai_tool_dicts, parse_data_uri
from chatrelay.llm.models import (
    ChatCompletionOptions,
    ChatCompletionResponse,
    ChatMessage,
    Choice,
    ChoiceMessage,
    FunctionCall,
    ImagePart,
    ToolCall,
    Usage,
)
from chatrelay.llm.pipeline import run_chat_completion
from chatrelay.llm.retry import RetryConfig

logger = logging.getLogger(__name__)

_OPTION_NAMES = {
    "temperature": "temperature",
    "top_p": "top_p",
    "frequency_penalty": "frequency_penalty",
    "presence_penalty": "presence_penalty",
    "max_tokens": "num_predict",
}


class OllamaAdapter(BaseLLMClient):
    """Adapter for local Ollama models."""

    def __init__(
        self,
        model: str = "gemma2:2b",
        base_url: str = "http://localhost:11434",
        native_tools: bool = False,
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
        self._base_url = base_url
        self._native_tools = native_tools
        self._timeout_s = timeout_s
        self.__client = client

    @property
    def _client(self):
        """Lazy-init ollama AsyncClient."""
        if self.__client is None:
            import ollama

            kwargs: dict[str, Any] = {"host": self._base_url}
            if self._timeout_s is not None:
                kwargs["timeout"] = self._timeout_s
            self.__client = ollama.AsyncClient(**kwargs)
        return self.__client

    async def create_chat_completion(
        self,
        options: ChatCompletionOptions,
        retries: int | None = None,
    ) -> ChatCompletionResponse | BaseModel:
        return await run_chat_completion(self, options, retries)

    async def dispatch(self, request: PreparedRequest) -> ChatCompletionResponse:
        import ollama

        kwargs = self._build_kwargs(request)
        t0 = time.monotonic()
        try:
            resp = await self._client.chat(**kwargs)
        except (ollama.ResponseError, httpx.HTTPError, ConnectionError) as e:
            raise UpstreamTransportError(self.provider_name, e) from e
        latency = int((time.monotonic() - t0) * 1000)

        logger.debug("ollama completion for %s in %dms", request.model, latency)
        return self._to_canonical(resp, request.model)

    @property
    def provider_name(self) -> str:
        return "ollama"

    def native_tools(self, model: str) -> bool:
        return self._native_tools

    # --- Internal helpers ---

    def _build_kwargs(self, request: PreparedRequest) -> dict[str, Any]:
        options = request.options
        model_options: dict[str, Any] = {}
        for name, ollama_name in _OPTION_NAMES.items():
            value = getattr(options, name)
            if value is not None:
                model_options[ollama_name] = value

        kwargs: dict[str, Any] = {
            "model": request.model,
            "messages": [self._to_api_message(m) for m in request.messages],
            "stream": False,
        }
        if model_options:
            kwargs["options"] = model_options
        if request.json_mode:
            kwargs["format"] = "json"
        if request.tools:
            kwargs["tools"] = openai_tool_dicts(request.tools)
        return kwargs

    @staticmethod
    def _to_api_message(m: ChatMessage) -> dict[str, Any]:
        if isinstance(m.content, str):
            return {"role": m.role, "content": m.content}
        texts: list[str] = []
        images: list[str] = []
        for p in m.content:
            if isinstance(p, ImagePart):
                parsed = parse_data_uri(p.image_url.url)
                if parsed is None:
                    logger.warning("ollama accepts inline images only, dropping %s", p.image_url.url)
                    continue
                images.append(parsed[1])
            else:
                texts.append(p.text)
        message: dict[str, Any] = {"role": m.role, "content": "\n".join(texts)}
        if images:
            message["images"] = images
        return message

    @staticmethod
    def _to_canonical(resp: Any, model: str) -> ChatCompletionResponse:
        """Map an ollama ChatResponse (or its dict form) to the canonical shape."""
        message = resp.get("message") or {}
        tool_calls: list[ToolCall] = []
        for i, call in enumerate(message.get("tool_calls") or []):
            fn = call["function"]
            arguments = fn.get("arguments") or {}
            if not isinstance(arguments, str):
                arguments = json.dumps(dict(arguments))
            tool_calls.append(
                ToolCall(id=f"call_{i}", function=FunctionCall(name=fn["name"], arguments=arguments))
            )

        prompt_tokens = resp.get("prompt_eval_count") or 0
        completion_tokens = resp.get("eval_count") or 0
        if tool_calls:
            content, finish_reason = None, "tool_calls"
        else:
            content, finish_reason = message.get("content") or None, resp.get("done_reason") or "stop"

        return ChatCompletionResponse(
            id=f"chatcmpl-{uuid.uuid4().hex}",
            created=_created_timestamp(resp.get("created_at")),
            model=resp.get("model") or model,
            choices=[
                Choice(
                    index=0,
                    message=ChoiceMessage(
                        role="assistant",
                        content=content,
                        tool_calls=tool_calls,
                    ),
                    finish_reason=finish_reason,
                )
            ],
            usage=Usage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
        )


def _created_timestamp(created_at: Any) -> int:
    if isinstance(created_at, datetime):
        return int(created_at.timestamp())
    if isinstance(created_at, str) and created_at:
        try:
            return int(datetime.fromisoformat(created_at.replace("Z", "+00:00")).timestamp())
        except ValueError:
            logger.debug("unparseable created_at %r", created_at)
    return int(time.time())
