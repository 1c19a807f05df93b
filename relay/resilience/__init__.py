"""
Resilience patterns for remote model backends.

The error taxonomy plus the model x credential retry state machine shared by
the provider adapters.
"""

from .attempts import MatrixResult, classify_status, run_attempt_matrix
from .errors import (
    AllProvidersFailedError,
    ConfigurationError,
    HybridError,
    JSONExtractionError,
    MalformedOutputError,
    OrchestrationError,
    ProviderExhaustedError,
    SwarmError,
)

__all__ = [
    "AllProvidersFailedError",
    "ConfigurationError",
    "HybridError",
    "JSONExtractionError",
    "MalformedOutputError",
    "MatrixResult",
    "OrchestrationError",
    "ProviderExhaustedError",
    "SwarmError",
    "classify_status",
    "run_attempt_matrix",
]
