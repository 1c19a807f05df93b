"""
Error taxonomy for the orchestration layer.

Components absorb failures inside their own retry loops; only exhaustion of
every option surfaces upward, as one of these errors carrying the last cause.
"""

from typing import Optional, Sequence


class OrchestrationError(Exception):
    """Base class for every error raised by Relay."""


class ConfigurationError(OrchestrationError):
    """A required credential or setting is missing for the chosen path."""


class MalformedOutputError(OrchestrationError):
    """A backend answered, but the answer is unusable (empty, unparseable)."""


class JSONExtractionError(MalformedOutputError, ValueError):
    """No JSON value could be recovered from model output."""

    def __init__(self, text: str):
        self.text = text
        preview = text[:80].replace("\n", " ")
        super().__init__(
            "Could not parse valid JSON from the model response; "
            f"it may be malformed or plain text: {preview!r}"
        )


class ProviderExhaustedError(OrchestrationError):
    """Every model/credential combination of one provider failed."""

    def __init__(self, provider: str, last_error: Optional[str] = None, attempts: int = 0):
        self.provider = provider
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(
            f"{provider} failed after {attempts} attempts. Last error: {last_error}"
        )


class SwarmError(OrchestrationError):
    """Every parallel swarm call failed."""


class HybridError(OrchestrationError):
    """Every provider in a hybrid fan-out failed."""


class AllProvidersFailedError(OrchestrationError):
    """The Fallback Orchestrator exhausted its provider trial list."""

    def __init__(self, attempted: Sequence[str], last_error: Optional[BaseException] = None):
        self.attempted = list(attempted)
        self.last_error = last_error
        detail = str(last_error) if last_error is not None else "no providers attempted"
        super().__init__(
            f"All AI providers failed ({', '.join(self.attempted) or 'none'}). "
            f"Last error: {detail}"
        )
