# src/config/settings.py — v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for provider credentials, retry policy, caching and
logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_PROVIDERS = ("openai", "anthropic", "ollama")


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === LLM ===
    llm_default_model: str = "gpt-4o"
    llm_default_retries: int = 3
    llm_retry_delay_s: float = 0.0
    llm_retry_backoff_factor: float = 2.0
    llm_max_tokens: int = 4096
    llm_timeout_s: float = 60.0
    # Extra registrations, e.g. "ollama:llama3.1,openai:gpt-4.1"
    llm_extra_models: str = ""

    # Provider connections
    openai_api_key: str = ""
    openai_base_url: str = ""
    anthropic_api_key: str = ""
    anthropic_base_url: str = ""
    ollama_base_url: str = "http://localhost:11434"
    ollama_native_tools: bool = False

    # === Cache ===
    cache_enabled: bool = False
    cache_backend: Literal["memory", "json"] = "json"
    cache_root: Path = Path("~/.chatrelay/cache")

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("llm_default_retries", "llm_retry_delay_s")
    @classmethod
    def validate_non_negative(cls, v: float, info) -> float:  # noqa: N805
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        for item in self.llm_extra_models_list:
            provider, sep, model = item.partition(":")
            if not sep or not model.strip():
                errors.append(
                    f"LLM_EXTRA_MODELS entry {item!r} must be 'provider:model'"
                )
            elif provider.strip() not in _PROVIDERS:
                errors.append(
                    f"LLM_EXTRA_MODELS entry {item!r} names unknown provider"
                )

        if self.llm_max_tokens <= 0:
            errors.append("LLM_MAX_TOKENS must be > 0")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def llm_extra_models_list(self) -> list[str]:
        """Parse comma-separated extra model registrations."""
        return [m.strip() for m in self.llm_extra_models.split(",") if m.strip()]


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
