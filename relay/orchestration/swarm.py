"""
Swarm Engine: consensus across several OpenRouter models for one prompt.

Used only as an enhancement in complex-task mode; any failure here makes the
orchestrator fall back to its normal provider chain.
"""

import asyncio
import logging
from typing import TYPE_CHECKING

from relay.discovery.selection import select_swarm_models
from relay.models.conversation import Role
from relay.models.outcome import ExecutionResult
from relay.models.policy import ExecutionRequest
from relay.orchestration.synthesis import (
    SWARM_SYNTHESIS_INSTRUCTION,
    SourcedResponse,
    build_swarm_synthesis_prompt,
    synthesis_request,
)
from relay.providers.streaming import emit_chunk
from relay.resilience.errors import ConfigurationError, SwarmError

if TYPE_CHECKING:
    from relay.orchestration.fallback import FallbackOrchestrator

logger = logging.getLogger(__name__)


class SwarmEngine:
    """Fan one prompt out to several marketplace models, then synthesize."""

    SYSTEM_PROMPT = "You are an expert AI. Answer the user's prompt accurately."

    def __init__(self, orchestrator: "FallbackOrchestrator"):
        self.orchestrator = orchestrator

    def _build_messages(self, request: ExecutionRequest) -> list[dict]:
        messages = [{"role": "system", "content": self.SYSTEM_PROMPT}]
        messages.extend(
            {"role": "user" if t.role == Role.USER else "assistant", "content": t.text}
            for t in request.history
        )
        messages.append({"role": "user", "content": request.prompt})
        return messages

    async def run(self, request: ExecutionRequest) -> ExecutionResult:
        """
        Query the selected models in parallel and synthesize one answer.

        Raises:
            ConfigurationError: If no OpenRouter keys are configured
            SwarmError: If every parallel call failed
        """
        api_keys = request.policy.openrouter_api_keys
        if not api_keys:
            raise ConfigurationError("Swarm mode requires OpenRouter keys")

        cache = self.orchestrator.cache
        await cache.ensure_fresh()
        models = select_swarm_models(
            request.prompt, cache.openrouter_models, self.orchestrator.config.swarm_size
        )

        logger.info(f"Swarm activated: querying {len(models)} models: {', '.join(models)}")
        await emit_chunk(
            request.on_chunk,
            f"**Swarm activated**\nQuerying {len(models)} AI models in parallel...\n\n",
        )

        messages = self._build_messages(request)
        results = await asyncio.gather(
            *(
                self.orchestrator.openrouter.send(messages, api_keys, model=model)
                for model in models
            ),
            return_exceptions=True,
        )

        responses = []
        for model, result in zip(models, results):
            if isinstance(result, BaseException):
                logger.warning(f"Swarm model {model} failed: {result}")
            elif result.text:
                responses.append(SourcedResponse(source=model, text=result.text))

        if not responses:
            raise SwarmError("Swarm failed: all models returned errors")

        logger.info(f"Swarm received {len(responses)}/{len(models)} responses, synthesizing")
        await emit_chunk(
            request.on_chunk,
            f"\nReceived {len(responses)} responses. Synthesizing final answer...\n\n",
        )

        synthesis = synthesis_request(
            request.policy,
            build_swarm_synthesis_prompt(request.prompt, responses),
            SWARM_SYNTHESIS_INSTRUCTION,
            on_chunk=request.on_chunk,
        )
        return await self.orchestrator.execute(synthesis)
