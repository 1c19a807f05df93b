"""
Helpers for forwarding streamed text to caller callbacks.
"""

import inspect
from typing import Optional

from relay.models.policy import ChunkCallback


async def emit_chunk(callback: Optional[ChunkCallback], chunk: str) -> None:
    """Forward ``chunk`` to ``callback``; accepts plain or async callbacks."""
    if callback is None or not chunk:
        return
    result = callback(chunk)
    if inspect.isawaitable(result):
        await result
