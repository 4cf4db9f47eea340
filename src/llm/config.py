# src/llm/config.py — v2
"""Model registry and provider resolution.

Resolution order for a model string:
  1. Registered model name (built-ins, LLM_EXTRA_MODELS, register_model)
  2. Explicit "provider:model" prefix (openai:gpt-4.1, ollama:llama3.1),
     which also registers the model
  3. Otherwise UnsupportedModelError
"""

from __future__ import annotations

from dataclasses import dataclass

from chatrelay.config.settings import Settings
from chatrelay.llm.errors import UnsupportedModelError

PROVIDERS = ("openai", "anthropic", "ollama")

_MODEL_REGISTRY: dict[str, str] = {
    "gpt-4o": "openai",
    "gpt-4o-mini": "openai",
    "gpt-4o-2024-08-06": "openai",
    "o1-mini": "openai",
    "o1-preview": "openai",
    "claude-3-5-sonnet-latest": "anthropic",
    "claude-3-5-sonnet-20241022": "anthropic",
    "claude-3-5-sonnet-20240620": "anthropic",
    "gemma2:2b": "ollama",
}


@dataclass(frozen=True)
class ModelAssignment:
    """Resolved provider:model pair."""

    provider: str
    model: str
    source: str  # "prefix", "registry"

    @property
    def key(self) -> str:
        """Return 'provider:model' string."""
        return f"{self.provider}:{self.model}"


def _parse_assignment(value: str) -> tuple[str, str] | None:
    """Parse 'provider:model'. Returns None unless the prefix is a known provider."""
    if ":" not in value:
        return None
    provider, model = value.split(":", 1)
    provider = provider.strip()
    if provider not in PROVIDERS or not model.strip():
        return None
    return (provider, model.strip())


def register_model(model: str, provider: str) -> None:
    """Register an additional model for a provider."""
    if provider not in PROVIDERS:
        raise UnsupportedModelError(f"Unknown provider {provider!r} for model {model!r}")
    _MODEL_REGISTRY[model] = provider


def register_settings_models(settings: Settings) -> None:
    """Register LLM_EXTRA_MODELS entries."""
    for item in settings.llm_extra_models_list:
        parsed = _parse_assignment(item)
        if parsed:
            register_model(parsed[1], parsed[0])


def is_supported(provider: str, model: str) -> bool:
    return _MODEL_REGISTRY.get(model) == provider


def available_models() -> dict[str, list[str]]:
    """Registered models grouped by provider."""
    grouped: dict[str, list[str]] = {p: [] for p in PROVIDERS}
    for model, provider in sorted(_MODEL_REGISTRY.items()):
        grouped[provider].append(model)
    return grouped


def resolve_model(value: str, settings: Settings | None = None) -> ModelAssignment:
    """Resolve a model string to its provider.

    Raises:
        UnsupportedModelError: If the model is neither prefixed nor registered.
    """
    if settings is not None:
        register_settings_models(settings)

    # Registered names win: "gemma2:2b" is a model, not provider "gemma2".
    provider = _MODEL_REGISTRY.get(value)
    if provider is not None:
        return ModelAssignment(provider=provider, model=value, source="registry")

    parsed = _parse_assignment(value)
    if parsed:
        register_model(parsed[1], parsed[0])
        return ModelAssignment(provider=parsed[0], model=parsed[1], source="prefix")

    raise UnsupportedModelError(
        f"Unsupported model: {value!r}. "
        f"Available: {', '.join(sorted(_MODEL_REGISTRY))}"
    )
