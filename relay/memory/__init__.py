"""
Long-term memory retrieval and extraction.
"""

from relay.memory.service import MemoryService, offline_memory_search

__all__ = ["MemoryService", "offline_memory_search"]
