"""
Fallback Orchestrator: the single entry point for obtaining a model answer.

Flow for one ``execute`` call:

1. Kick off a non-blocking catalog refresh.
2. In complex-task mode (with OpenRouter keys, no attachments, no JSON mode)
   try the Swarm Engine first; any failure falls through.
3. Build the provider trial list: chosen provider, then Gemini, then
   OpenRouter and Hugging Face when the user has keys for them. ``hybrid``
   routes to the Hybrid Engine.
4. Try providers in order; the first answer wins, failures are logged.
5. If every provider failed, raise ``AllProvidersFailedError``.

Synthesis calls made by the Swarm/Hybrid engines re-enter ``execute`` at
synthesis depth 1, where neither engine is used again.
"""

import logging
from typing import Optional

from relay.config import LLMConfig, get_settings
from relay.discovery.catalog import ModelDiscoveryCache, get_model_cache
from relay.models.conversation import Role
from relay.models.outcome import ExecutionResult
from relay.models.policy import ExecutionRequest, PolicySettings, ProviderName
from relay.orchestration.hybrid import HybridEngine
from relay.orchestration.swarm import SwarmEngine
from relay.providers.gemini import GeminiProvider
from relay.providers.huggingface import HuggingFaceProvider
from relay.providers.openrouter import OpenRouterProvider
from relay.resilience.errors import AllProvidersFailedError, ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_INSTRUCTION = "You are a helpful AI assistant."
JSON_ONLY_INSTRUCTION = (
    "\n\nIMPORTANT: Respond with valid JSON only. Do not add Markdown blocks."
)


def select_primary_model(
    policy: PolicySettings, has_attachments: bool, config: LLMConfig
) -> tuple[str, Optional[int]]:
    """Return the Gemini model and thinking budget for this call."""
    if policy.complex_task_mode:
        return config.gemini_reasoning_model, config.gemini_thinking_budget
    if has_attachments:
        return config.gemini_vision_model, None
    return config.gemini_default_model, None


def build_trial_list(policy: PolicySettings, allow_hybrid: bool = True) -> list[ProviderName]:
    """Ordered providers to try for ``policy``."""
    chosen = policy.provider
    if chosen == ProviderName.HYBRID and not allow_hybrid:
        chosen = ProviderName.GEMINI

    providers = [chosen]
    if chosen != ProviderName.GEMINI:
        providers.append(ProviderName.GEMINI)
    if chosen != ProviderName.OPENROUTER and policy.has_openrouter:
        providers.append(ProviderName.OPENROUTER)
    if chosen != ProviderName.HUGGINGFACE and policy.has_huggingface:
        providers.append(ProviderName.HUGGINGFACE)
    return providers


def build_openrouter_messages(request: ExecutionRequest) -> list[dict]:
    messages = [
        {"role": "system", "content": request.system_instruction or DEFAULT_SYSTEM_INSTRUCTION}
    ]
    messages.extend(
        {"role": "user" if t.role == Role.USER else "assistant", "content": t.text}
        for t in request.history
    )
    prompt = request.prompt
    if request.json_mode:
        prompt += JSON_ONLY_INSTRUCTION
    messages.append({"role": "user", "content": prompt})
    return messages


def build_huggingface_prompt(request: ExecutionRequest) -> str:
    lines = [f"{t.role.value}: {t.text}" for t in request.history]
    lines.append(f"User: {request.prompt}")
    prompt = "\n".join(lines)
    if request.json_mode:
        prompt += JSON_ONLY_INSTRUCTION
    return prompt


class FallbackOrchestrator:
    """Try providers in priority order until one produces an answer."""

    def __init__(
        self,
        config: Optional[LLMConfig] = None,
        cache: Optional[ModelDiscoveryCache] = None,
        gemini: Optional[GeminiProvider] = None,
        openrouter: Optional[OpenRouterProvider] = None,
        huggingface: Optional[HuggingFaceProvider] = None,
    ):
        self.config = config or get_settings().llm
        self.cache = cache or get_model_cache()
        self.gemini = gemini or GeminiProvider(self.config)
        self.openrouter = openrouter or OpenRouterProvider(self.config, self.cache)
        self.huggingface = huggingface or HuggingFaceProvider(self.config, self.cache)
        self.swarm = SwarmEngine(self)
        self.hybrid = HybridEngine(self)

    def _swarm_eligible(self, request: ExecutionRequest) -> bool:
        policy = request.policy
        return (
            policy.complex_task_mode
            and policy.has_openrouter
            and not request.attachments
            and not request.json_mode
            and not request.is_synthesis
        )

    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """
        Obtain one answer for ``request``.

        Raises:
            AllProvidersFailedError: If every provider in the trial list failed
        """
        self.cache.refresh_in_background()

        if self._swarm_eligible(request):
            try:
                return await self.swarm.run(request)
            except Exception as e:
                logger.warning(f"Swarm failed, falling back to single-model execution: {e}")

        providers = build_trial_list(request.policy, allow_hybrid=not request.is_synthesis)
        last_error: Optional[BaseException] = None

        for provider in providers:
            try:
                return await self.call_provider(provider, request)
            except Exception as e:
                logger.warning(f"{provider.value} failed: {e}")
                last_error = e

        logger.error(f"All providers failed: {[p.value for p in providers]}")
        raise AllProvidersFailedError([p.value for p in providers], last_error)

    async def call_provider(
        self, provider: ProviderName, request: ExecutionRequest
    ) -> ExecutionResult:
        """Run ``request`` against one provider without falling back."""
        policy = request.policy

        if provider == ProviderName.HYBRID:
            return await self.hybrid.run(request)

        if provider == ProviderName.GEMINI:
            model, thinking_budget = select_primary_model(
                policy, bool(request.attachments), self.config
            )
            return await self.gemini.send(
                request.prompt,
                request.history,
                model=model,
                system_instruction=request.system_instruction,
                json_mode=request.json_mode,
                use_search=request.use_tools and not request.json_mode,
                thinking_budget=thinking_budget,
                attachments=request.attachments,
                on_chunk=request.on_chunk,
            )

        if request.attachments:
            logger.debug(f"{provider.value} is text-only, attachments are not forwarded")

        if provider == ProviderName.OPENROUTER:
            if not policy.has_openrouter:
                raise ConfigurationError("No OpenRouter keys")
            return await self.openrouter.send(
                build_openrouter_messages(request),
                policy.openrouter_api_keys,
                on_chunk=request.on_chunk,
            )

        if provider == ProviderName.HUGGINGFACE:
            if not policy.has_huggingface:
                raise ConfigurationError("No Hugging Face keys")
            return await self.huggingface.send(
                build_huggingface_prompt(request),
                policy.huggingface_api_keys,
                system_instruction=request.system_instruction,
            )

        raise ConfigurationError(f"Unknown provider: {provider}")
