"""
Provider adapters: one per backend, each turning a conversation into text.

- GeminiProvider: primary model, always tried, supports attachments/streaming
- OpenRouterProvider: marketplace of free models behind user keys
- HuggingFaceProvider: hosted inference endpoints behind user tokens
"""

from relay.providers.gemini import GeminiProvider
from relay.providers.huggingface import HuggingFaceProvider
from relay.providers.openrouter import OpenRouterProvider

__all__ = ["GeminiProvider", "HuggingFaceProvider", "OpenRouterProvider"]
