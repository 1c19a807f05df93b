"""
Chat-facing helpers: memory-aware responses, session switching, research.
"""

from relay.chat.service import ChatService

__all__ = ["ChatService"]
