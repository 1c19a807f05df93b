"""
Orchestration: fallback chain plus the Swarm and Hybrid consensus engines.
"""

from relay.orchestration.fallback import (
    FallbackOrchestrator,
    build_trial_list,
    select_primary_model,
)
from relay.orchestration.hybrid import HybridEngine
from relay.orchestration.swarm import SwarmEngine

__all__ = [
    "FallbackOrchestrator",
    "HybridEngine",
    "SwarmEngine",
    "build_trial_list",
    "select_primary_model",
]
