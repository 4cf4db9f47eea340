# src/llm/pipeline.py — v2
"""Provider-agnostic completion flow shared by every adapter.

    CACHE_CHECK -> hit: return
                -> miss: BUILD_REQUEST -> DISPATCH -> NORMALIZE
                         -> (PARSE -> VALIDATE) -> CACHE_STORE? -> return
                         -> schema failure: retry from BUILD_REQUEST or raise

Every attempt rebuilds its message list from the caller's options, so the
schema instruction appears exactly once per attempt.
"""

from __future__ import annotations

import json
import logging
import uuid

from pydantic import BaseModel

from chatrelay.cache.fingerprint import compute_cache_key
from chatrelay.cache.models import CacheEntry
from chatrelay.llm.base_client import BaseLLMClient, PreparedRequest
from chatrelay.llm.config import is_supported
from chatrelay.llm.errors import UnsupportedModelError, UpstreamTransportError
from chatrelay.llm.messages import (
    function_tools,
    image_message,
    normalize_messages,
    synthesize_tool_call,
)
from chatrelay.llm.models import ChatCompletionOptions, ChatCompletionResponse, ResponseModel
from chatrelay.llm.retry import with_schema_retries
from chatrelay.llm.schema import (
    TOOL_INVOCATION,
    parse_json_content,
    schema_instruction,
    serialize_schema,
    tool_instruction,
    validate_payload,
)
from chatrelay.logging.context import reset_request_context, set_request_context
from chatrelay.logging.logger import log_event

logger = logging.getLogger(__name__)

CACHE_CATEGORY = "llm_cache"


async def run_chat_completion(
    client: BaseLLMClient,
    options: ChatCompletionOptions,
    retries: int | None = None,
) -> ChatCompletionResponse | BaseModel:
    """Execute one logical completion call for `client`.

    The request context (request id, provider, model) is attached to log
    records for the duration of the call and restored afterwards.

    Raises:
        UnsupportedModelError: model not registered for the client's provider.
        UpstreamTransportError: provider/network failure (not retried).
        SchemaSerializationError, SchemaParseError, InvalidResponseSchemaError:
            structured output still failing after the retry budget.
    """
    provider = client.provider_name
    model = options.model or client.model
    if not is_supported(provider, model):
        raise UnsupportedModelError(f"Model {model!r} is not supported by {provider}")

    budget = options.retries if retries is None else retries
    tokens = set_request_context(options.request_id, provider, model)
    try:
        return await _complete(client, options, model, budget)
    finally:
        reset_request_context(tokens)


async def _complete(
    client: BaseLLMClient,
    options: ChatCompletionOptions,
    model: str,
    budget: int,
) -> ChatCompletionResponse | BaseModel:
    """CACHE_CHECK -> retry loop -> CACHE_STORE."""
    provider = client.provider_name
    request_id = options.request_id

    log_event(
        logger, logging.INFO, "creating chat completion",
        category=provider, options=options.loggable(), model_name=model,
        request_id=request_id,
    )

    use_cache = client.enable_caching and client.cache is not None
    cache_key = None
    if use_cache:
        cache_key = compute_cache_key(options, model)
        entry = await client.cache.get(cache_key, request_id)  # type: ignore[union-attr]
        if entry is not None:
            log_event(
                logger, logging.INFO, "LLM cache hit - returning cached response",
                category=CACHE_CATEGORY, request_id=request_id, kind=entry.kind,
            )
            return _from_cache_entry(entry, options)
        log_event(
            logger, logging.INFO, "LLM cache miss - no cached response found",
            category=CACHE_CATEGORY, request_id=request_id,
        )

    async def attempt(n: int) -> ChatCompletionResponse | BaseModel:
        return await _run_attempt(client, options, model, n)

    try:
        result = await with_schema_retries(
            attempt, budget, category=provider, request_id=request_id,
            config=client.retry_config,
        )
    except UpstreamTransportError as e:
        log_event(
            logger, logging.ERROR, "request failed",
            category=provider, request_id=request_id, error=str(e),
        )
        raise

    if use_cache:
        entry = _to_cache_entry(cache_key, result, model, request_id)  # type: ignore[arg-type]
        log_event(
            logger, logging.INFO, "caching response",
            category=CACHE_CATEGORY, request_id=request_id, kind=entry.kind,
            cache_key=cache_key,
        )
        await client.cache.set(cache_key, entry, request_id)  # type: ignore[union-attr, arg-type]

    return result


async def _run_attempt(
    client: BaseLLMClient,
    options: ChatCompletionOptions,
    model: str,
    attempt: int,
) -> ChatCompletionResponse | BaseModel:
    """BUILD_REQUEST -> DISPATCH -> NORMALIZE -> (PARSE -> VALIDATE)."""
    request, extraction = build_request(client, options, model)

    log_event(
        logger, logging.INFO, "dispatching request",
        category=client.provider_name, request_id=options.request_id,
        attempt=attempt + 1, messages=len(request.messages),
        tools=len(request.tools), json_mode=request.json_mode,
    )
    response = await client.dispatch(request)
    log_event(
        logger, logging.INFO, "response",
        category=client.provider_name, request_id=options.request_id,
        response=response.model_dump(mode="json"),
    )

    if extraction is None:
        return response

    data = parse_json_content(response.content)
    validated = validate_payload(extraction, data)
    if options.response_model is not None:
        return validated
    return synthesize_tool_call(
        response, validated.model_dump(), call_id=f"call_{uuid.uuid4().hex[:24]}"
    )


def build_request(
    client: BaseLLMClient, options: ChatCompletionOptions, model: str
) -> tuple[PreparedRequest, ResponseModel | None]:
    """Build one attempt's request from the original options.

    Returns the request and the schema the reply must be validated against
    (None for plain completions).
    """
    messages = list(options.messages)
    if options.image is not None:
        messages.append(image_message(options.image))

    response_model = options.response_model
    tools = function_tools(options.tools)
    native_tools = client.native_tools(model)
    strategy = client.structured_output_strategy(model)

    extraction: ResponseModel | None = None
    json_schema = None
    forwarded_tools = []

    if response_model is not None:
        extraction = response_model
        schema_json = serialize_schema(response_model)
        if strategy == "native":
            json_schema = json.loads(schema_json)
        else:
            messages.append(schema_instruction(schema_json))
    elif tools and not native_tools:
        extraction = TOOL_INVOCATION
        messages.append(tool_instruction(tools, serialize_schema(TOOL_INVOCATION)))
    else:
        forwarded_tools = tools

    request = PreparedRequest(
        model=model,
        messages=normalize_messages(messages),
        options=options,
        tools=forwarded_tools,
        json_schema=json_schema,
        schema_name=response_model.name if json_schema is not None else None,
        json_mode=extraction is not None,
    )
    return request, extraction


def _to_cache_entry(
    key: str,
    result: ChatCompletionResponse | BaseModel,
    model: str,
    request_id: str | None,
) -> CacheEntry:
    if isinstance(result, ChatCompletionResponse):
        return CacheEntry(
            key=key, kind="response", value=result.model_dump(mode="json"),
            model=model, request_id=request_id,
        )
    return CacheEntry(
        key=key, kind="structured", value=result.model_dump(mode="json"),
        model=model, request_id=request_id,
    )


def _from_cache_entry(
    entry: CacheEntry, options: ChatCompletionOptions
) -> ChatCompletionResponse | BaseModel:
    if entry.kind == "structured" and options.response_model is not None:
        return options.response_model.schema.model_validate(entry.value)
    return ChatCompletionResponse.model_validate(entry.value)
