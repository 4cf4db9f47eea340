# src/llm/client_factory.py — v3
"""Factory: instantiate LLM client from provider name or model string.

Provider credentials, timeouts and retry policy come from Settings; the
cache store is shared between clients when passed in explicitly.
"""

from __future__ import annotations

import importlib
import logging

from chatrelay.cache.base_cache_store import BaseCacheStore
from chatrelay.cache.cache_factory import create_cache_store
from chatrelay.config.settings import Settings, load_settings
from chatrelay.llm.base_client import BaseLLMClient
from chatrelay.llm.config import resolve_model
from chatrelay.llm.retry import RetryConfig

logger = logging.getLogger(__name__)

# Registry of provider name → adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[str, str] = {
    "openai": "chatrelay.llm.adapters.openai_adapter.OpenAIAdapter",
    "anthropic": "chatrelay.llm.adapters.anthropic_adapter.AnthropicAdapter",
    "ollama": "chatrelay.llm.adapters.ollama_adapter.OllamaAdapter",
}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered."""


def create_llm_client(
    provider: str,
    model: str,
    settings: Settings | None = None,
    cache: BaseCacheStore | None = None,
    enable_caching: bool | None = None,
    **kwargs: object,
) -> BaseLLMClient:
    """Instantiate the correct adapter from provider name.

    Args:
        provider: Provider identifier (openai, anthropic, ollama).
        model: Model name (e.g. gpt-4o, gemma2:2b).
        settings: Application settings (API keys, endpoints, retry policy).
        cache: Cache store shared by the client.
        enable_caching: Defaults to settings.cache_enabled when omitted.
        **kwargs: Additional provider-specific arguments.

    Raises:
        UnsupportedProviderError: If provider is not registered.
    """
    if provider not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    adapter_cls = _import_class(_PROVIDER_REGISTRY[provider])

    init_kwargs = dict(kwargs)
    init_kwargs["model"] = model
    init_kwargs["cache"] = cache
    if enable_caching is None:
        enable_caching = settings.cache_enabled if settings is not None else False
    init_kwargs["enable_caching"] = enable_caching and cache is not None

    if settings is not None:
        init_kwargs.setdefault("timeout_s", settings.llm_timeout_s)
        init_kwargs.setdefault(
            "retry_config",
            RetryConfig(
                base_delay_s=settings.llm_retry_delay_s,
                backoff_factor=settings.llm_retry_backoff_factor,
            ),
        )
        if provider == "openai":
            init_kwargs.setdefault("api_key", settings.openai_api_key)
            init_kwargs.setdefault("base_url", settings.openai_base_url)
        elif provider == "anthropic":
            init_kwargs.setdefault("api_key", settings.anthropic_api_key)
            init_kwargs.setdefault("base_url", settings.anthropic_base_url)
            init_kwargs.setdefault("max_tokens_default", settings.llm_max_tokens)
        elif provider == "ollama":
            init_kwargs.setdefault("base_url", settings.ollama_base_url)
            init_kwargs.setdefault("native_tools", settings.ollama_native_tools)

    logger.debug("Creating LLM client: provider=%s, model=%s", provider, model)
    return adapter_cls(**init_kwargs)


def create_client_for_model(
    model: str | None = None,
    settings: Settings | None = None,
    cache: BaseCacheStore | None = None,
    enable_caching: bool | None = None,
    **kwargs: object,
) -> BaseLLMClient:
    """Resolve `model` to its provider and build the matching client.

    A cache store is created from settings when caching is enabled and none
    is given.

    Raises:
        UnsupportedModelError: If the model cannot be resolved.
    """
    settings = settings if settings is not None else load_settings()
    assignment = resolve_model(model or settings.llm_default_model, settings)

    if enable_caching is None:
        enable_caching = settings.cache_enabled
    if enable_caching and cache is None:
        cache = create_cache_store(settings)

    return create_llm_client(
        assignment.provider,
        assignment.model,
        settings=settings,
        cache=cache,
        enable_caching=enable_caching,
        **kwargs,
    )


def register_provider(name: str, class_path: str) -> None:
    """Register a custom provider adapter.

    Args:
        name: Provider identifier.
        class_path: Fully qualified class path implementing BaseLLMClient.
    """
    _PROVIDER_REGISTRY[name] = class_path
    logger.info("Registered LLM provider: %s → %s", name, class_path)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
