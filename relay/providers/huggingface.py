"""
Inference-endpoint adapter for the Hugging Face Inference API.

One hosted model per request. Models come from the discovery cache and are
tried with every user key in order. A model that is still loading is skipped
(next model), never treated as a reason to give up on the provider.
"""

import logging
from typing import Any, Optional, Sequence

import httpx

from relay.config import LLMConfig
from relay.discovery.catalog import ModelDiscoveryCache
from relay.models.outcome import (
    AttemptClassification,
    ExecutionResult,
    ProviderAttemptOutcome,
)
from relay.resilience.attempts import classify_status, run_attempt_matrix

logger = logging.getLogger(__name__)

PROVIDER = "huggingface"
CREDENTIAL_STATUSES = (401, 429)


def build_chat_prompt(prompt: str, system_instruction: Optional[str] = None) -> str:
    """Wrap ``prompt`` in role-delimited chat markup."""
    if system_instruction:
        return (
            f"<|system|>\n{system_instruction}</s>\n"
            f"<|user|>\n{prompt}</s>\n<|assistant|>"
        )
    return f"<|user|>\n{prompt}</s>\n<|assistant|>"


def is_loading_response(data: Any) -> bool:
    if not isinstance(data, dict):
        return False
    return "loading" in str(data.get("error", "")).lower()


def parse_generated_text(data: Any) -> str:
    """Accept ``[{"generated_text"}]``, ``{"generated_text"}`` or a bare string."""
    if isinstance(data, str):
        return data
    if isinstance(data, list) and data and isinstance(data[0], dict):
        return str(data[0].get("generated_text") or "")
    if isinstance(data, dict):
        return str(data.get("generated_text") or "")
    return ""


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


class HuggingFaceProvider:
    """Text generation over hosted Hugging Face models."""

    def __init__(
        self,
        config: LLMConfig,
        cache: ModelDiscoveryCache,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.cache = cache
        self._transport = transport

    def _request_body(self, full_prompt: str) -> dict:
        return {
            "inputs": full_prompt,
            "parameters": {
                "max_new_tokens": self.config.huggingface_max_new_tokens,
                "temperature": self.config.huggingface_temperature,
                "return_full_text": False,
            },
        }

    async def send(
        self,
        prompt: str,
        api_keys: Sequence[str],
        *,
        system_instruction: Optional[str] = None,
        models: Optional[Sequence[str]] = None,
    ) -> ExecutionResult:
        """
        Generate text with the first hosted model that answers.

        Args:
            prompt: Flattened conversation text
            api_keys: User's Hugging Face tokens, tried in order
            system_instruction: Optional system prompt embedded in the markup
            models: Explicit model list (defaults to the cached catalog)

        Raises:
            ConfigurationError: If no keys are configured
            ProviderExhaustedError: If every model/key combination failed
        """
        if models:
            candidates = list(models)
        else:
            await self.cache.ensure_fresh()
            candidates = list(self.cache.huggingface_models)

        body = self._request_body(build_chat_prompt(prompt, system_instruction))

        async with httpx.AsyncClient(
            timeout=self.config.huggingface_timeout_seconds, transport=self._transport
        ) as client:

            async def attempt(model: str, api_key: str) -> ProviderAttemptOutcome:
                return await self._attempt(client, model, api_key, body)

            result = await run_attempt_matrix("Hugging Face", candidates, api_keys, attempt)

        logger.info(f"Hugging Face {result.model} answered ({len(result.text)} chars)")
        return ExecutionResult(text=result.text, provider=PROVIDER, model=result.model)

    async def _attempt(
        self,
        client: httpx.AsyncClient,
        model: str,
        api_key: str,
        body: dict,
    ) -> ProviderAttemptOutcome:
        url = f"{self.config.huggingface_inference_url.rstrip('/')}/models/{model}"
        try:
            response = await client.post(
                url, headers={"Authorization": f"Bearer {api_key}"}, json=body
            )
        except httpx.HTTPError as e:
            return ProviderAttemptOutcome.failure(
                AttemptClassification.TRANSIENT, f"{model}: {type(e).__name__}: {e}"
            )

        data = _json_or_none(response)

        # Checked before the status: loading models answer 503 with this body
        if is_loading_response(data):
            return ProviderAttemptOutcome.failure(
                AttemptClassification.MODEL_LOADING,
                f"{model}: model is loading",
                status_code=response.status_code,
            )

        if not response.is_success:
            return ProviderAttemptOutcome.failure(
                classify_status(response.status_code, CREDENTIAL_STATUSES),
                f"{model}: HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        text = parse_generated_text(data if data is not None else response.text)
        if not text:
            return ProviderAttemptOutcome.failure(
                AttemptClassification.TRANSIENT, f"{model}: empty response"
            )
        return ProviderAttemptOutcome.success(text)
