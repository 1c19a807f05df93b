"""
Recover a JSON value from free-form model output.

Models do not reliably honor structured-output requests: they wrap JSON in
Markdown fences or surround it with prose. Attempts, first success wins:

1. the whole text
2. the first fenced code block (optionally tagged ``json``)
3. first ``{`` through last ``}``
4. first ``[`` through last ``]``
"""

import json
import logging
import re
from typing import Any, Optional

from relay.resilience.errors import JSONExtractionError

logger = logging.getLogger(__name__)

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


def _try_parse(candidate: str) -> tuple[bool, Any]:
    try:
        return True, json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return False, None


def _slice_between(text: str, opener: str, closer: str) -> Optional[str]:
    start = text.find(opener)
    end = text.rfind(closer)
    if start == -1 or end == -1 or end <= start:
        return None
    return text[start : end + 1]


def extract_json(text: str) -> Any:
    """
    Parse the JSON value embedded in ``text``.

    Raises:
        JSONExtractionError: If none of the strategies yields valid JSON
    """
    ok, value = _try_parse(text)
    if ok:
        return value

    match = _FENCED_BLOCK.search(text)
    if match:
        ok, value = _try_parse(match.group(1))
        if ok:
            return value

    for opener, closer in (("{", "}"), ("[", "]")):
        candidate = _slice_between(text, opener, closer)
        if candidate is None:
            continue
        ok, value = _try_parse(candidate)
        if ok:
            return value
        logger.debug(f"JSON heuristic {opener}...{closer} failed")

    raise JSONExtractionError(text)
