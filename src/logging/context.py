# src/logging/context.py — v3
"""Contextual logging support: attach request_id, provider and model to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Set per completion call; asyncio tasks get their own copy.
_request_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)
_provider: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "provider", default=None
)
_model: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "model", default=None
)


@dataclass
class LogContext:
    """Snapshot of current logging context."""

    request_id: str | None = None
    provider: str | None = None
    model: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        request_id=_request_id.get(),
        provider=_provider.get(),
        model=_model.get(),
    )


def set_request_context(
    request_id: str | None, provider: str | None = None, model: str | None = None
) -> tuple[contextvars.Token, ...]:
    """Set request-level context (called once per completion call).

    Returns the tokens that reset_request_context() uses to restore the
    previous values.
    """
    return (
        _request_id.set(request_id),
        _provider.set(provider),
        _model.set(model),
    )


def reset_request_context(tokens: tuple[contextvars.Token, ...]) -> None:
    """Restore the context that was active before set_request_context()."""
    request_token, provider_token, model_token = tokens
    _model.reset(model_token)
    _provider.reset(provider_token)
    _request_id.reset(request_token)


def clear_context() -> None:
    """Reset all context variables."""
    _request_id.set(None)
    _provider.set(None)
    _model.set(None)
