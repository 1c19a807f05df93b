"""
Dynamic model discovery with static safety lists.
"""

from relay.discovery.catalog import ModelDiscoveryCache, get_model_cache, reset_model_cache
from relay.discovery.scoring import (
    SAFETY_FALLBACK_HUGGINGFACE,
    SAFETY_FALLBACK_OPENROUTER,
    score_openrouter_model,
)

__all__ = [
    "ModelDiscoveryCache",
    "SAFETY_FALLBACK_HUGGINGFACE",
    "SAFETY_FALLBACK_OPENROUTER",
    "get_model_cache",
    "reset_model_cache",
    "score_openrouter_model",
]
