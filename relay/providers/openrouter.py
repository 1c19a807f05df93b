"""
Marketplace adapter for OpenRouter.

OpenRouter exposes many interchangeable free models behind one
OpenAI-compatible API, so the OpenAI SDK is used with a custom ``base_url``.
Every model is tried with every user key in order:

- 401 / 402 / 429: the key is exhausted, try the next key for the same model
- any other HTTP status: the model is unavailable, move to the next model
- connection errors and empty answers: try the next key
"""

import logging
from typing import Optional, Sequence

import openai
from openai import AsyncOpenAI

from relay.config import LLMConfig
from relay.discovery.catalog import ModelDiscoveryCache
from relay.discovery.selection import mentions_code, prioritize_coding_models
from relay.models.outcome import (
    AttemptClassification,
    ExecutionResult,
    ProviderAttemptOutcome,
)
from relay.models.policy import ChunkCallback
from relay.providers.streaming import emit_chunk
from relay.resilience.attempts import classify_status, run_attempt_matrix

logger = logging.getLogger(__name__)

PROVIDER = "openrouter"
CREDENTIAL_STATUSES = (401, 402, 429)


class OpenRouterProvider:
    """Chat completions over OpenRouter with model x key fallback."""

    def __init__(self, config: LLMConfig, cache: ModelDiscoveryCache):
        self.config = config
        self.cache = cache
        self._clients: dict[str, AsyncOpenAI] = {}

    def _client_for(self, api_key: str) -> AsyncOpenAI:
        client = self._clients.get(api_key)
        if client is None:
            # Retries are handled by the key/model matrix, not the SDK
            client = AsyncOpenAI(
                api_key=api_key,
                base_url=self.config.openrouter_base_url,
                timeout=self.config.openrouter_timeout_seconds,
                max_retries=0,
                default_headers={
                    "HTTP-Referer": self.config.openrouter_referer,
                    "X-Title": self.config.openrouter_title,
                },
            )
            self._clients[api_key] = client
        return client

    async def resolve_models(
        self,
        messages: Sequence[dict],
        models: Optional[Sequence[str]] = None,
        model: Optional[str] = None,
    ) -> list[str]:
        """Pinned model, explicit list, or the cached catalog (coding-first when relevant)."""
        if model:
            return [model]
        if models:
            return list(models)

        await self.cache.ensure_fresh()
        catalog = list(self.cache.openrouter_models)
        if mentions_code(str(m.get("content", "")) for m in messages):
            return prioritize_coding_models(catalog)
        return catalog

    async def send(
        self,
        messages: Sequence[dict],
        api_keys: Sequence[str],
        *,
        models: Optional[Sequence[str]] = None,
        model: Optional[str] = None,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> ExecutionResult:
        """
        Send an OpenAI-style message list.

        Args:
            messages: ``[{"role": ..., "content": ...}]`` in chronological order
            api_keys: User's OpenRouter keys, tried in order
            models: Explicit model list to try instead of the catalog
            model: Single pinned model (wins over ``models``)
            on_chunk: If set, stream and forward each text delta

        Raises:
            ConfigurationError: If no keys are configured
            ProviderExhaustedError: If every model/key combination failed
        """
        candidates = await self.resolve_models(messages, models, model)

        async def attempt(model_name: str, api_key: str) -> ProviderAttemptOutcome:
            return await self._attempt(model_name, api_key, messages, on_chunk)

        result = await run_attempt_matrix("OpenRouter", candidates, api_keys, attempt)
        logger.info(f"OpenRouter {result.model} answered ({len(result.text)} chars)")
        return ExecutionResult(text=result.text, provider=PROVIDER, model=result.model)

    async def _attempt(
        self,
        model: str,
        api_key: str,
        messages: Sequence[dict],
        on_chunk: Optional[ChunkCallback],
    ) -> ProviderAttemptOutcome:
        try:
            client = self._client_for(api_key)
            if on_chunk is not None:
                text = await self._stream(client, model, messages, on_chunk)
            else:
                completion = await client.chat.completions.create(
                    model=model, messages=list(messages), stream=False
                )
                if not completion.choices:
                    return ProviderAttemptOutcome.failure(
                        AttemptClassification.TRANSIENT, f"{model}: no choices in response"
                    )
                text = completion.choices[0].message.content or ""

            if not text:
                return ProviderAttemptOutcome.failure(
                    AttemptClassification.TRANSIENT, f"{model}: empty response"
                )
            return ProviderAttemptOutcome.success(text)

        except openai.APIStatusError as e:
            return ProviderAttemptOutcome.failure(
                classify_status(e.status_code, CREDENTIAL_STATUSES),
                f"{model}: HTTP {e.status_code}: {e.message}",
                status_code=e.status_code,
            )
        except Exception as e:
            return ProviderAttemptOutcome.failure(
                AttemptClassification.TRANSIENT, f"{model}: {type(e).__name__}: {e}"
            )

    async def _stream(
        self,
        client: AsyncOpenAI,
        model: str,
        messages: Sequence[dict],
        on_chunk: ChunkCallback,
    ) -> str:
        stream = await client.chat.completions.create(
            model=model, messages=list(messages), stream=True
        )
        pieces = []
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                await emit_chunk(on_chunk, delta)
                pieces.append(delta)
        return "".join(pieces)
