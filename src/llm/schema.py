# src/llm/schema.py — v1
"""Structured-output extraction for providers without schema-constrained decoding.

The caller schema is rendered as JSON Schema and appended to the
conversation as an instruction; the textual reply is then parsed as JSON and
validated with pydantic. Each step raises its own SchemaError subclass so
the retry controller can tell them apart.
"""

from __future__ import annotations

import json
import re
from typing import Any

from pydantic import BaseModel, PydanticUserError, ValidationError

from chatrelay.llm.errors import (
    SchemaParseError,
    SchemaSerializationError,
    SchemaValidationError,
)
from chatrelay.llm.models import ChatMessage, ResponseModel, ToolDefinition

_FENCE_RE = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?```$", re.DOTALL)


class ToolInvocation(BaseModel):
    """Reply shape requested when tool calling is emulated through a schema."""

    name: str
    arguments: dict[str, Any]


TOOL_INVOCATION = ResponseModel(name="ToolInvocation", schema=ToolInvocation)


def serialize_schema(response_model: ResponseModel) -> str:
    """Render the caller schema as JSON Schema text."""
    try:
        return json.dumps(response_model.schema.model_json_schema())
    except (PydanticUserError, AttributeError, TypeError, ValueError) as e:
        raise SchemaSerializationError(
            f"Cannot serialize schema {response_model.name!r}: {e}"
        ) from e


def schema_instruction(schema_json: str) -> ChatMessage:
    """User message asking for a bare JSON reply matching the schema."""
    return ChatMessage(
        role="user",
        content=(
            f"Respond in this JSON schema format:\n{schema_json}\n\n"
            "Do not include any other text, formatting or markdown in your output. "
            "Do not include ``` or ```json in your response. "
            "Only the JSON object itself."
        ),
    )


def tool_instruction(tools: list[ToolDefinition], schema_json: str) -> ChatMessage:
    """User message describing the available tools for emulated tool calling."""
    lines = []
    for tool in tools:
        if tool.function is None:
            continue
        fn = tool.function
        lines.append(
            f"- {fn.name}: {fn.description or 'no description'}\n"
            f"  parameters: {json.dumps(fn.parameters)}"
        )
    return ChatMessage(
        role="user",
        content=(
            "You can call exactly one of these tools:\n"
            + "\n".join(lines)
            + "\n\nChoose the tool to call and reply with its name and arguments "
            f"in this JSON schema format:\n{schema_json}\n\n"
            "Do not include any other text, formatting or markdown in your output. "
            "Only the JSON object itself."
        ),
    )


def parse_json_content(content: str | None) -> Any:
    """Parse a model reply as JSON.

    A single surrounding markdown fence is stripped first; anything else
    must be literal JSON.
    """
    if content is None or not content.strip():
        raise SchemaParseError("Empty response content", content)
    text = content.strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1).strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise SchemaParseError(f"Failed to parse JSON: {e}", content) from e


def validate_payload(response_model: ResponseModel, data: Any) -> BaseModel:
    """Validate parsed data against the caller schema."""
    try:
        return response_model.schema.model_validate(data)
    except ValidationError as e:
        raise SchemaValidationError(
            f"Response does not match schema {response_model.name!r}: "
            f"{e.error_count()} error(s)",
            data,
        ) from e
