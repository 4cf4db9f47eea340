# src/llm/errors.py — v1
"""Error taxonomy for chat completions.

SchemaError subclasses are retryable; UpstreamTransportError is not.
"""

from __future__ import annotations


class LLMError(RuntimeError):
    pass


class UnsupportedModelError(LLMError, ValueError):
    """Raised when a model is not registered for the requested provider."""


class SchemaError(LLMError):
    """Base class for retryable structured-output failures."""


class SchemaSerializationError(SchemaError):
    """The caller schema could not be turned into a JSON Schema description."""


class SchemaParseError(SchemaError, ValueError):
    """The provider reply is not valid JSON."""

    def __init__(self, message: str, content: str | None = None) -> None:
        super().__init__(message)
        self.content = content


class SchemaValidationError(SchemaError, ValueError):
    """The parsed reply does not conform to the caller schema."""

    def __init__(self, message: str, data: object = None) -> None:
        super().__init__(message)
        self.data = data


class InvalidResponseSchemaError(LLMError):
    """Schema validation kept failing after the retry budget was spent."""

    def __init__(
        self,
        attempts: int,
        last_error: SchemaValidationError,
        failures: list[SchemaError] | None = None,
    ) -> None:
        self.attempts = attempts
        self.last_error = last_error
        self.failures = failures or [last_error]
        super().__init__(
            f"Invalid response schema after {attempts} attempt(s): {last_error}"
        )


class UpstreamTransportError(LLMError):
    """Provider or network failure; propagated without retry."""

    def __init__(self, provider: str, error: BaseException) -> None:
        self.provider = provider
        self.error = error
        super().__init__(f"{provider} request failed: {error}")
