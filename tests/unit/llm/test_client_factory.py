# tests/unit/llm/test_client_factory.py — v2
"""Tests for llm/client_factory.py — provider registry and settings wiring."""

from __future__ import annotations

import pytest

from chatrelay.cache.json_store import JsonCacheStore
from chatrelay.llm import config
from chatrelay.llm.adapters.anthropic_adapter import AnthropicAdapter
from chatrelay.llm.adapters.ollama_adapter import OllamaAdapter
from chatrelay.llm.adapters.openai_adapter import OpenAIAdapter
from chatrelay.llm.client_factory import (
    UnsupportedProviderError,
    _PROVIDER_REGISTRY,
    create_client_for_model,
    create_llm_client,
    register_provider,
)
from chatrelay.llm.errors import UnsupportedModelError


@pytest.fixture(autouse=True)
def _isolated_registry(monkeypatch):
    monkeypatch.setattr(config, "_MODEL_REGISTRY", dict(config._MODEL_REGISTRY))


class TestCreateLLMClient:
    def test_openai(self, settings):
        client = create_llm_client("openai", "gpt-4o", settings=settings)
        assert isinstance(client, OpenAIAdapter)
        assert client.model == "gpt-4o"
        assert client.retry_config.base_delay_s == settings.llm_retry_delay_s

    def test_anthropic(self, settings):
        client = create_llm_client("anthropic", "claude-3-5-sonnet-latest", settings=settings)
        assert isinstance(client, AnthropicAdapter)

    def test_ollama_native_tools_from_settings(self, tmp_path):
        from chatrelay.config.settings import Settings

        s = Settings(_env_file=None, ollama_native_tools=True, cache_root=tmp_path)
        client = create_llm_client("ollama", "gemma2:2b", settings=s)
        assert isinstance(client, OllamaAdapter)
        assert client.native_tools("gemma2:2b") is True

    def test_unknown_provider(self):
        with pytest.raises(UnsupportedProviderError, match="Unsupported LLM provider"):
            create_llm_client("google", "gemini-pro")

    def test_caching_requires_store(self, settings, memory_cache):
        assert create_llm_client("openai", "gpt-4o", enable_caching=True).enable_caching is False
        client = create_llm_client("openai", "gpt-4o", cache=memory_cache, enable_caching=True)
        assert client.enable_caching is True
        assert client.cache is memory_cache

    def test_register_provider(self, monkeypatch):
        monkeypatch.setitem(_PROVIDER_REGISTRY, "custom", "chatrelay.llm.adapters.openai_adapter.OpenAIAdapter")
        register_provider("custom", "chatrelay.llm.adapters.openai_adapter.OpenAIAdapter")
        assert isinstance(create_llm_client("custom", "gpt-4o"), OpenAIAdapter)


class TestCreateClientForModel:
    def test_default_model(self, settings):
        client = create_client_for_model(settings=settings)
        assert isinstance(client, OpenAIAdapter)
        assert client.model == "gpt-4o"

    def test_registered_ollama_model(self, settings):
        client = create_client_for_model("gemma2:2b", settings=settings)
        assert isinstance(client, OllamaAdapter)

    def test_cache_created_when_enabled(self, tmp_path):
        from chatrelay.config.settings import Settings

        s = Settings(_env_file=None, cache_enabled=True, cache_root=tmp_path)
        client = create_client_for_model("gpt-4o-mini", settings=s)
        assert client.enable_caching is True
        assert isinstance(client.cache, JsonCacheStore)

    def test_no_cache_override(self, tmp_path):
        from chatrelay.config.settings import Settings

        s = Settings(_env_file=None, cache_enabled=True, cache_root=tmp_path)
        client = create_client_for_model("gpt-4o", settings=s, enable_caching=False)
        assert client.enable_caching is False
        assert client.cache is None

    def test_unsupported_model(self, settings):
        with pytest.raises(UnsupportedModelError):
            create_client_for_model("mystery-7b", settings=settings)

    def test_settings_loaded_when_omitted(self, settings, monkeypatch):
        from chatrelay.llm import client_factory

        monkeypatch.setattr(client_factory, "load_settings", lambda: settings)
        client = create_client_for_model()
        assert isinstance(client, OpenAIAdapter)
        assert client.model == settings.llm_default_model
