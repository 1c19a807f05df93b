"""
Hybrid Engine: best-effort consensus across every configured provider.
"""

import asyncio
import logging
from typing import TYPE_CHECKING

from relay.models.outcome import ExecutionResult
from relay.models.policy import ExecutionRequest, ProviderName
from relay.orchestration.synthesis import (
    HYBRID_SYNTHESIS_INSTRUCTION,
    SourcedResponse,
    build_hybrid_synthesis_prompt,
    synthesis_request,
)
from relay.resilience.errors import HybridError

if TYPE_CHECKING:
    from relay.orchestration.fallback import FallbackOrchestrator

logger = logging.getLogger(__name__)


class HybridEngine:
    """Ask Gemini, OpenRouter and Hugging Face in parallel, then synthesize."""

    def __init__(self, orchestrator: "FallbackOrchestrator"):
        self.orchestrator = orchestrator

    async def run(self, request: ExecutionRequest) -> ExecutionResult:
        """
        Raises:
            HybridError: If every provider failed
        """
        orchestrator = self.orchestrator
        policy = request.policy

        if not policy.has_openrouter and not policy.has_huggingface:
            logger.info("Hybrid mode without marketplace keys, answering with Gemini only")
            gemini_only = policy.model_copy(update={"provider": ProviderName.GEMINI})
            return await orchestrator.call_provider(
                ProviderName.GEMINI, request.model_copy(update={"policy": gemini_only})
            )

        await orchestrator.cache.ensure_fresh()
        prompt = request.prompt

        branches = [
            (
                "Gemini",
                orchestrator.gemini.send(prompt, model=orchestrator.config.gemini_hybrid_model),
            )
        ]
        if policy.has_openrouter:
            branches.append(
                (
                    "OpenRouter (Dynamic)",
                    orchestrator.openrouter.send(
                        [{"role": "user", "content": prompt}], policy.openrouter_api_keys
                    ),
                )
            )
        if policy.has_huggingface:
            branches.append(
                (
                    "HuggingFace (Dynamic)",
                    orchestrator.huggingface.send(prompt, policy.huggingface_api_keys),
                )
            )

        logger.info(f"Hybrid mode: querying {len(branches)} providers in parallel")
        results = await asyncio.gather(*(coro for _, coro in branches), return_exceptions=True)

        responses = []
        for (label, _), result in zip(branches, results):
            if isinstance(result, BaseException):
                logger.warning(f"Hybrid branch {label} failed: {result}")
            elif result.text:
                responses.append(SourcedResponse(source=label, text=result.text))

        if not responses:
            raise HybridError("Hybrid synthesis failed: all providers failed")

        synthesis = synthesis_request(
            policy, build_hybrid_synthesis_prompt(responses), HYBRID_SYNTHESIS_INSTRUCTION
        )
        return await orchestrator.execute(synthesis)
