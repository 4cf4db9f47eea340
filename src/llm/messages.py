# src/llm/messages.py — v1
"""Provider-agnostic message shaping shared by the adapters."""

from __future__ import annotations

import base64
import json
import re
from typing import Any

from chatrelay.llm.models import (
    ChatCompletionResponse,
    ChatMessage,
    FunctionCall,
    ImageAttachment,
    ImagePart,
    ImageUrl,
    TextPart,
    ToolCall,
    ToolDefinition,
)

_DATA_URI_RE = re.compile(r"^data:(?P<media_type>[^;,]+)?(;base64)?,(?P<data>.*)$", re.DOTALL)


def normalize_messages(messages: list[ChatMessage]) -> list[ChatMessage]:
    """Enforce role content rules.

    system and assistant messages keep their text parts only; user messages
    keep text and image parts in order. String content is left untouched.
    """
    normalized: list[ChatMessage] = []
    for m in messages:
        if isinstance(m.content, str) or m.role == "user":
            normalized.append(m)
            continue
        text_parts = [p for p in m.content if isinstance(p, TextPart)]
        normalized.append(ChatMessage(role=m.role, content=text_parts))
    return normalized


def to_data_uri(buffer: bytes, media_type: str = "image/jpeg") -> str:
    return f"data:{media_type};base64,{base64.b64encode(buffer).decode('ascii')}"


def parse_data_uri(url: str) -> tuple[str, str] | None:
    """Split a base64 data URI into (media_type, base64 data)."""
    match = _DATA_URI_RE.match(url)
    if match is None:
        return None
    media_type = match.group("media_type") or "application/octet-stream"
    return media_type, match.group("data")


def image_message(image: ImageAttachment) -> ChatMessage:
    """Trailing user message carrying the image and its optional description."""
    parts: list[ImagePart | TextPart] = [
        ImagePart(image_url=ImageUrl(url=to_data_uri(image.buffer, image.media_type)))
    ]
    if image.description:
        parts.append(TextPart(text=image.description))
    return ChatMessage(role="user", content=parts)


def function_tools(tools: list[ToolDefinition] | None) -> list[ToolDefinition]:
    """Keep only tool definitions that describe a function."""
    return [t for t in tools or [] if t.function is not None]


def openai_tool_dicts(tools: list[ToolDefinition]) -> list[dict[str, Any]]:
    return [t.model_dump(mode="json", exclude_none=True) for t in tools]


def synthesize_tool_call(
    response: ChatCompletionResponse, payload: dict[str, Any], call_id: str
) -> ChatCompletionResponse:
    """Turn a parsed {name, arguments} payload into a tool call on the first choice.

    The textual content is cleared: a choice carries either text or tool
    calls, never both.
    """
    if not response.choices:
        return response
    tool_call = ToolCall(
        id=call_id,
        function=FunctionCall(
            name=payload["name"],
            arguments=json.dumps(payload["arguments"]),
        ),
    )
    first = response.choices[0]
    message = first.message.model_copy(update={"content": None, "tool_calls": [tool_call]})
    choices = [first.model_copy(update={"message": message, "finish_reason": "tool_calls"})]
    return response.model_copy(update={"choices": choices + response.choices[1:]})
