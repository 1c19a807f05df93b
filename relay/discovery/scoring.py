"""
Pure ranking and filtering functions for model discovery.

Kept free of network code so weights can be tuned and unit-tested directly.
"""

from typing import Any, Iterable, Mapping, Sequence

SAFETY_FALLBACK_OPENROUTER: tuple[str, ...] = (
    "deepseek/deepseek-r1:free",
    "google/gemini-2.0-flash-lite-preview-02-05:free",
    "meta-llama/llama-3.3-70b-instruct:free",
    "mistralai/mistral-7b-instruct:free",
    "microsoft/phi-3-medium-128k-instruct:free",
)

SAFETY_FALLBACK_HUGGINGFACE: tuple[str, ...] = (
    "HuggingFaceH4/zephyr-7b-beta",
    "mistralai/Mistral-7B-Instruct-v0.3",
)

# Substring -> score bonus. Reasoning family first, then vendor families,
# then parameter-count markers.
OPENROUTER_SCORE_WEIGHTS: tuple[tuple[str, int], ...] = (
    ("deepseek-r1", 15),
    ("llama-3", 10),
    ("mistral", 8),
    ("gemini", 8),
    ("70b", 5),
    ("free", 1),
)

HUGGINGFACE_BLOCKLIST: tuple[str, ...] = ("gemma-7b",)


def score_openrouter_model(model_id: str) -> int:
    """Heuristic quality score for an OpenRouter model identifier."""
    lowered = model_id.lower()
    return sum(weight for needle, weight in OPENROUTER_SCORE_WEIGHTS if needle in lowered)


def _parse_price(value: Any) -> float:
    # Missing prices count as paid
    if value is None:
        return 1.0
    return float(value)


def is_free_model(entry: Mapping[str, Any]) -> bool:
    """True if both prompt and completion prices parse to exactly zero."""
    pricing = entry.get("pricing") or {}
    try:
        prompt_price = _parse_price(pricing.get("prompt"))
        completion_price = _parse_price(pricing.get("completion"))
    except (TypeError, ValueError):
        return False
    return prompt_price == 0 and completion_price == 0


def rank_free_openrouter_models(entries: Iterable[Mapping[str, Any]]) -> list[str]:
    """
    Filter a listing down to free models and rank them by score.

    The sort is stable: equal scores keep their listing order.
    """
    free_ids = [str(entry["id"]) for entry in entries if is_free_model(entry)]
    return sorted(free_ids, key=score_openrouter_model, reverse=True)


def merge_huggingface_models(
    discovered: Iterable[str],
    safety_list: Sequence[str] = SAFETY_FALLBACK_HUGGINGFACE,
) -> list[str]:
    """Drop blocklisted ids and merge behind the safety list, deduplicated."""
    filtered = [
        model_id
        for model_id in discovered
        if not any(blocked in model_id.lower() for blocked in HUGGINGFACE_BLOCKLIST)
    ]
    return list(dict.fromkeys([*safety_list, *filtered]))
