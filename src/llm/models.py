# src/llm/models.py — v2
"""Canonical chat-completion types shared by every provider adapter.

Request side: ChatMessage (text/image parts), ImageAttachment, ToolDefinition,
ResponseModel, ChatCompletionOptions.
Response side: ToolCall, Choice, Usage, ChatCompletionResponse.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

Role = Literal["system", "user", "assistant"]


class TextPart(BaseModel):
    """Text content part."""

    type: Literal["text"] = "text"
    text: str


class ImageUrl(BaseModel):
    url: str


class ImagePart(BaseModel):
    """Image content part (data URI or http(s) URL)."""

    type: Literal["image_url"] = "image_url"
    image_url: ImageUrl


ContentPart = Annotated[Union[TextPart, ImagePart], Field(discriminator="type")]


class ChatMessage(BaseModel):
    """Single message in a conversation."""

    role: Role
    content: str | list[ContentPart]

    def text(self) -> str:
        """Concatenated text of the message, ignoring image parts."""
        if isinstance(self.content, str):
            return self.content
        return "\n".join(p.text for p in self.content if isinstance(p, TextPart))

    def image_urls(self) -> list[str]:
        if isinstance(self.content, str):
            return []
        return [p.image_url.url for p in self.content if isinstance(p, ImagePart)]


class ImageAttachment(BaseModel):
    """Image appended to the conversation as a trailing user message."""

    buffer: bytes
    description: str | None = None
    media_type: str = "image/jpeg"


@dataclass(frozen=True)
class ResponseModel:
    """Caller schema for structured output."""

    name: str
    schema: type[BaseModel]


class FunctionDefinition(BaseModel):
    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


class ToolDefinition(BaseModel):
    """Tool definition in OpenAI format."""

    type: str = "function"
    function: FunctionDefinition | None = None


class ChatCompletionOptions(BaseModel):
    """Immutable request options for one logical completion call."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    messages: list[ChatMessage] = Field(min_length=1)
    model: str | None = None
    temperature: float | None = None
    top_p: float | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    max_tokens: int | None = None
    image: ImageAttachment | None = None
    tools: list[ToolDefinition] | None = None
    tool_choice: str | None = None
    response_model: ResponseModel | None = None
    request_id: str | None = None
    retries: int = Field(default=3, ge=0)

    def loggable(self) -> dict[str, Any]:
        """Options as JSON-safe data, without the image buffer."""
        data = self.model_dump(
            mode="json", exclude={"image", "response_model"}, exclude_none=True
        )
        if self.image is not None:
            data["image"] = {
                "bytes": len(self.image.buffer),
                "description": self.image.description,
            }
        if self.response_model is not None:
            data["response_model"] = self.response_model.name
        return data


class FunctionCall(BaseModel):
    name: str
    arguments: str = "{}"


class ToolCall(BaseModel):
    """Model-initiated function invocation; arguments are JSON-encoded."""

    id: str
    type: Literal["function"] = "function"
    function: FunctionCall


class ChoiceMessage(BaseModel):
    role: str = "assistant"
    content: str | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)

    @field_validator("tool_calls", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return [] if v is None else v


class Choice(BaseModel):
    index: int = 0
    message: ChoiceMessage
    finish_reason: str = "stop"

    @field_validator("finish_reason", mode="before")
    @classmethod
    def _default_finish_reason(cls, v: Any) -> Any:
        return "stop" if v is None else v


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @model_validator(mode="after")
    def _fill_total(self) -> Usage:
        if not self.total_tokens:
            self.total_tokens = self.prompt_tokens + self.completion_tokens
        return self


class ChatCompletionResponse(BaseModel):
    """Normalized completion result from any provider."""

    model_config = ConfigDict(extra="ignore", protected_namespaces=())

    id: str
    object: str = "chat.completion"
    created: int
    model: str
    choices: list[Choice]
    usage: Usage = Field(default_factory=Usage)

    @field_validator("usage", mode="before")
    @classmethod
    def _default_usage(cls, v: Any) -> Any:
        return Usage() if v is None else v

    @property
    def content(self) -> str | None:
        """Text content of the first choice."""
        if not self.choices:
            return None
        return self.choices[0].message.content

    @property
    def tool_calls(self) -> list[ToolCall]:
        if not self.choices:
            return []
        return self.choices[0].message.tool_calls
