"""
Tests for environment-driven configuration.
"""

import pytest
from pydantic import ValidationError

from relay.config import LLMConfig


def test_defaults(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("LLM_GEMINI_API_KEY", raising=False)

    config = LLMConfig(_env_file=None)

    assert config.gemini_default_model == "gemini-2.5-flash"
    assert config.gemini_reasoning_model == "gemini-3-pro-preview"
    assert config.gemini_hybrid_model == "gemini-2.5-pro"
    assert config.gemini_thinking_budget == 32768
    assert config.catalog_ttl_seconds == 3600
    assert config.swarm_size == 5
    assert not config.has_gemini


def test_prefixed_environment_variables(monkeypatch):
    monkeypatch.setenv("LLM_GEMINI_API_KEY", "prefixed-key")
    monkeypatch.setenv("LLM_CATALOG_TTL_SECONDS", "120")

    config = LLMConfig(_env_file=None)

    assert config.gemini_api_key == "prefixed-key"
    assert config.catalog_ttl_seconds == 120


def test_unprefixed_gemini_key_fallback(monkeypatch):
    monkeypatch.delenv("LLM_GEMINI_API_KEY", raising=False)
    monkeypatch.setenv("GEMINI_API_KEY", "plain-key")

    config = LLMConfig(_env_file=None)

    assert config.gemini_api_key == "plain-key"
    assert config.has_gemini


def test_api_key_not_in_repr():
    config = LLMConfig(gemini_api_key="secret-gemini-key", _env_file=None)
    assert "secret-gemini-key" not in repr(config)


def test_bounds_are_validated():
    with pytest.raises(ValidationError):
        LLMConfig(swarm_size=0, _env_file=None)
    with pytest.raises(ValidationError):
        LLMConfig(huggingface_temperature=3.0, _env_file=None)
