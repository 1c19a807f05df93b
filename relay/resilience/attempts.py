"""
Model x credential retry state machine.

Adapters describe a single wire call as an ``AttemptFn`` that returns a
``ProviderAttemptOutcome``; ``run_attempt_matrix`` walks the models and
credentials strictly in list order and decides what to try next from the
outcome's classification alone:

    SUCCESS               -> return
    CREDENTIAL_EXHAUSTED  -> next credential, same model
    TRANSIENT             -> next credential, same model
    MODEL_UNAVAILABLE     -> next model
    MODEL_LOADING         -> next model (recoverable, never aborts the provider)
"""

import logging
from typing import Awaitable, Callable, Iterable, NamedTuple, Optional, Sequence

from relay.models.outcome import AttemptClassification, ProviderAttemptOutcome
from relay.resilience.errors import ConfigurationError, ProviderExhaustedError

logger = logging.getLogger(__name__)

AttemptFn = Callable[[str, str], Awaitable[ProviderAttemptOutcome]]


class MatrixResult(NamedTuple):
    text: str
    model: str


def classify_status(
    status_code: int, credential_statuses: Iterable[int]
) -> AttemptClassification:
    """Map a non-success HTTP status to an attempt classification."""
    if status_code in set(credential_statuses):
        return AttemptClassification.CREDENTIAL_EXHAUSTED
    return AttemptClassification.MODEL_UNAVAILABLE


async def run_attempt_matrix(
    provider: str,
    models: Sequence[str],
    credentials: Sequence[str],
    attempt: AttemptFn,
) -> MatrixResult:
    """
    Try every model with every credential until one attempt succeeds.

    Args:
        provider: Provider label for logs and errors
        models: Model identifiers in priority order
        credentials: API keys in priority order
        attempt: Coroutine performing one call for (model, credential)

    Returns:
        Text and model of the first successful attempt

    Raises:
        ConfigurationError: If there are no credentials or no models
        ProviderExhaustedError: If every combination failed
    """
    if not credentials:
        raise ConfigurationError(f"No {provider} API keys configured")
    if not models:
        raise ConfigurationError(f"No {provider} models available")

    last_error: Optional[str] = None
    attempts = 0

    for model in models:
        for index, credential in enumerate(credentials):
            attempts += 1
            outcome = await attempt(model, credential)

            if outcome.ok:
                return MatrixResult(text=outcome.text, model=model)

            last_error = outcome.reason
            classification = outcome.classification

            if classification == AttemptClassification.CREDENTIAL_EXHAUSTED:
                logger.warning(
                    f"{provider} key #{index + 1} exhausted "
                    f"({outcome.status_code}) for model {model}"
                )
            elif classification == AttemptClassification.MODEL_LOADING:
                logger.warning(f"{provider} model {model} is loading, skipping")
            else:
                logger.warning(f"{provider} model {model} failed: {outcome.reason}")

            if classification.abandons_model:
                break

    raise ProviderExhaustedError(provider, last_error=last_error, attempts=attempts)
