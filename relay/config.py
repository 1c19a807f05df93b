"""
Configuration for the Relay orchestration layer.

Values are read from the environment (prefix ``LLM_``) and an optional ``.env``
file. Per-call choices (provider, complex-task mode, OpenRouter and Hugging Face
keys) live in ``PolicySettings``; this module only holds process-wide settings
such as endpoints, model identifiers and timeouts.

Example:
    >>> from relay.config import get_settings
    >>> settings = get_settings()
    >>> settings.llm.catalog_ttl_seconds
    3600
"""

import os
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMConfig(BaseSettings):
    """Provider endpoints, model choices and timeouts."""

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Gemini (primary provider, single process-wide credential)
    gemini_api_key: Optional[str] = Field(default=None, repr=False, validate_default=True)
    gemini_default_model: str = "gemini-2.5-flash"
    gemini_vision_model: str = "gemini-2.5-flash"
    gemini_reasoning_model: str = "gemini-3-pro-preview"
    gemini_hybrid_model: str = "gemini-2.5-pro"
    gemini_thinking_budget: int = Field(default=32768, ge=0)
    gemini_timeout_seconds: int = Field(default=120, ge=1, le=600)

    # OpenRouter (marketplace provider)
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_models_url: str = "https://openrouter.ai/api/v1/models"
    openrouter_referer: str = "https://relay.local"
    openrouter_title: str = "Relay"
    openrouter_timeout_seconds: int = Field(default=120, ge=1, le=600)

    # Hugging Face (inference-endpoint provider)
    huggingface_inference_url: str = "https://api-inference.huggingface.co"
    huggingface_models_url: str = "https://huggingface.co/api/models"
    huggingface_discovery_limit: int = Field(default=20, ge=1, le=100)
    huggingface_max_new_tokens: int = Field(default=1024, ge=1)
    huggingface_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    huggingface_timeout_seconds: int = Field(default=120, ge=1, le=600)

    # Model discovery
    catalog_ttl_seconds: int = Field(default=3600, ge=1)
    discovery_timeout_seconds: int = Field(default=15, ge=1, le=120)

    # Swarm
    swarm_size: int = Field(default=5, ge=1, le=10)

    @field_validator("gemini_api_key", mode="before")
    @classmethod
    def _fallback_gemini_key(cls, value: Optional[str]) -> Optional[str]:
        if value:
            return value
        # The Google SDKs conventionally read GEMINI_API_KEY without a prefix.
        return os.environ.get("GEMINI_API_KEY") or None

    @property
    def has_gemini(self) -> bool:
        return bool(self.gemini_api_key)


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    llm: LLMConfig = Field(default_factory=LLMConfig)
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Return the cached process-wide settings."""
    return Settings()
