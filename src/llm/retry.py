# src/llm/retry.py — v2
"""Bounded retry around structured-output failures.

Only SchemaError subclasses are retried. Any other exception (transport
failures included) propagates on the spot.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from chatrelay.llm.errors import (
    InvalidResponseSchemaError,
    SchemaError,
    SchemaParseError,
    SchemaSerializationError,
    SchemaValidationError,
)
from chatrelay.logging.logger import log_event

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Delay between attempts. The default retries immediately."""

    base_delay_s: float = 0.0
    backoff_factor: float = 2.0
    jitter: bool = False


def classify_error(error: SchemaError) -> str:
    """Short label of a retryable error, used in log events."""
    if isinstance(error, SchemaSerializationError):
        return "schema_serialization"
    if isinstance(error, SchemaParseError):
        return "schema_parse"
    if isinstance(error, SchemaValidationError):
        return "schema_validation"
    return "schema"


def _compute_delay(config: RetryConfig, attempt: int) -> float:
    """Compute delay for a given attempt (0-based)."""
    delay = config.base_delay_s * (config.backoff_factor ** attempt)
    if config.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay


async def with_schema_retries(
    attempt_fn: Callable[[int], Awaitable[T]],
    retries: int,
    *,
    category: str = "llm",
    request_id: str | None = None,
    config: RetryConfig | None = None,
) -> T:
    """Run attempt_fn(attempt) up to retries + 1 times.

    Raises:
        SchemaSerializationError, SchemaParseError: re-raised unchanged once
            the budget is spent.
        InvalidResponseSchemaError: when the last failure was a validation
            error.
    """
    config = config or RetryConfig()
    failures: list[SchemaError] = []
    max_attempts = max(retries, 0) + 1

    for attempt in range(max_attempts):
        try:
            return await attempt_fn(attempt)
        except SchemaError as e:
            failures.append(e)
            error_type = classify_error(e)
            if attempt + 1 >= max_attempts:
                log_event(
                    logger, logging.ERROR, "structured output failed, retries exhausted",
                    category=category, request_id=request_id, error_type=error_type,
                    attempts=len(failures), error=str(e),
                )
                if isinstance(e, SchemaValidationError):
                    raise InvalidResponseSchemaError(len(failures), e, failures) from e
                raise

            delay = _compute_delay(config, attempt)
            log_event(
                logger, logging.WARNING, f"retrying after {error_type} failure",
                category=category, request_id=request_id, error_type=error_type,
                attempt=attempt + 1, max_attempts=max_attempts, error=str(e),
            )
            if delay > 0:
                await asyncio.sleep(delay)

    raise AssertionError("unreachable")
