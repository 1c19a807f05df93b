"""
Relay: multi-provider LLM inference orchestration.

Routes every model call through a fallback chain across Gemini, OpenRouter
and Hugging Face, with optional swarm and hybrid consensus modes.

Example:
    >>> from relay import FallbackOrchestrator, ExecutionRequest, PolicySettings
    >>> orchestrator = FallbackOrchestrator()
    >>> result = await orchestrator.execute(ExecutionRequest(prompt="hello"))
"""

from relay.models import ExecutionRequest, ExecutionResult, PolicySettings, ProviderName
from relay.orchestration import FallbackOrchestrator
from relay.parsing import extract_json
from relay.resilience import AllProvidersFailedError, OrchestrationError

__version__ = "0.1.0"

__all__ = [
    "AllProvidersFailedError",
    "ExecutionRequest",
    "ExecutionResult",
    "FallbackOrchestrator",
    "OrchestrationError",
    "PolicySettings",
    "ProviderName",
    "extract_json",
]
