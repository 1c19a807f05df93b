"""
Per-prompt model selection heuristics.

Pure functions (string -> intent, catalog -> model list) so they can be tuned
and unit-tested without network code.
"""

from dataclasses import dataclass
from typing import Iterable, Sequence

from relay.discovery.scoring import SAFETY_FALLBACK_OPENROUTER

CODING_KEYWORDS = ("code", "function", "script", "html")
REASONING_KEYWORDS = ("why", "explain", "solve", "think")

CODING_MODEL_MARKERS = ("coder", "deepseek", "flash")
REASONING_MODEL_MARKERS = ("r1", "llama", "mistral")
# One model from each family is always included for diversity
DIVERSITY_FAMILIES = ("llama-3", "gemini", "mistral")

# Markers used to move coding models to the front of an OpenRouter fallback list
CODING_PRIORITY_MARKERS = ("coder", "deepseek")
CODING_CONVERSATION_KEYWORDS = ("code", "function")

DEFAULT_SWARM_SIZE = 5


@dataclass(frozen=True)
class PromptIntent:
    """Keyword-based intent tags; both may be set, neither is the default."""

    coding: bool = False
    reasoning: bool = False


def classify_intent(prompt: str) -> PromptIntent:
    lowered = prompt.lower()
    return PromptIntent(
        coding=any(word in lowered for word in CODING_KEYWORDS),
        reasoning=any(word in lowered for word in REASONING_KEYWORDS),
    )


def _matching(models: Sequence[str], markers: Iterable[str]) -> list[str]:
    markers = tuple(markers)
    return [m for m in models if any(marker in m for marker in markers)]


def select_swarm_models(
    prompt: str,
    catalog: Sequence[str],
    size: int = DEFAULT_SWARM_SIZE,
) -> list[str]:
    """
    Pick up to ``size`` distinct models to query in parallel for ``prompt``.

    Coding prompts get up to two coding models, otherwise reasoning prompts get
    up to two reasoning models; one model of each diversity family is added
    when present; remaining slots are filled from the front of the catalog.
    """
    if not catalog:
        return list(SAFETY_FALLBACK_OPENROUTER[:3])

    intent = classify_intent(prompt)
    selected: dict[str, None] = {}

    if intent.coding:
        for model in _matching(catalog, CODING_MODEL_MARKERS)[:2]:
            selected[model] = None
    elif intent.reasoning:
        for model in _matching(catalog, REASONING_MODEL_MARKERS)[:2]:
            selected[model] = None

    for family in DIVERSITY_FAMILIES:
        for model in _matching(catalog, (family,))[:1]:
            selected[model] = None

    for model in catalog:
        if len(selected) >= size:
            break
        selected[model] = None

    return list(selected)[:size]


def mentions_code(texts: Iterable[str]) -> bool:
    return any(
        keyword in text for text in texts for keyword in CODING_CONVERSATION_KEYWORDS
    )


def prioritize_coding_models(models: Sequence[str]) -> list[str]:
    """Stable reorder putting coding-oriented models first."""
    return sorted(
        models,
        key=lambda m: 0 if any(marker in m for marker in CODING_PRIORITY_MARKERS) else 1,
    )
