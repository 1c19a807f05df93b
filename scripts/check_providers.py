#!/usr/bin/env python3
"""
Quick check that the configured providers answer through the fallback chain.

Keys for the marketplace providers are read from RELAY_OPENROUTER_KEYS and
RELAY_HUGGINGFACE_KEYS (comma separated); Gemini uses LLM_GEMINI_API_KEY or
GEMINI_API_KEY.

Run: python scripts/check_providers.py
"""

import asyncio
import logging
import os
import sys
from pathlib import Path

# Load .env file
from dotenv import load_dotenv
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(env_path)

from relay.config import get_settings
from relay.discovery import get_model_cache
from relay.models import ExecutionRequest, PolicySettings, ProviderName
from relay.orchestration import FallbackOrchestrator


def _keys(name: str) -> list[str]:
    return [k.strip() for k in os.getenv(name, "").split(",") if k.strip()]


async def check_providers():
    """Refresh the model catalog and run one prompt per provider."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    llm_config = settings.llm
    policy = PolicySettings(
        openrouter_api_keys=_keys("RELAY_OPENROUTER_KEYS"),
        huggingface_api_keys=_keys("RELAY_HUGGINGFACE_KEYS"),
    )

    print("=== Configuration ===")
    print(f"Gemini key configured: {llm_config.has_gemini}")
    print(f"OpenRouter keys: {len(policy.openrouter_api_keys)}")
    print(f"Hugging Face keys: {len(policy.huggingface_api_keys)}")
    print()

    print("=== Model Discovery ===")
    cache = get_model_cache()
    await cache.ensure_fresh()
    print(f"OpenRouter models: {list(cache.openrouter_models)[:5]}")
    print(f"Hugging Face models: {list(cache.huggingface_models)[:5]}")
    print()

    orchestrator = FallbackOrchestrator(config=llm_config, cache=cache)
    providers = [ProviderName.GEMINI]
    if policy.has_openrouter:
        providers.append(ProviderName.OPENROUTER)
    if policy.has_huggingface:
        providers.append(ProviderName.HUGGINGFACE)

    ok = True
    for provider in providers:
        print(f"=== {provider.value} ===")
        request = ExecutionRequest(
            prompt="Reply with the single word: pong",
            policy=policy.model_copy(update={"provider": provider}),
        )
        try:
            result = await orchestrator.call_provider(provider, request)
            print(f"  Model: {result.model}")
            print(f"  Answer: {result.text[:100]}")
        except Exception as e:
            print(f"  Failed: {e}")
            ok = False

    return ok


if __name__ == "__main__":
    success = asyncio.run(check_providers())
    sys.exit(0 if success else 1)
