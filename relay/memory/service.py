"""
Long-term memory: model-ranked retrieval with an offline keyword fallback,
and memory extraction from finished conversations.
"""

import json
import logging
import uuid
from typing import Optional, Sequence

from relay.models.conversation import ConversationTurn
from relay.models.policy import ExecutionRequest, PolicySettings
from relay.models.records import Memory
from relay.orchestration.fallback import FallbackOrchestrator
from relay.parsing.json_extractor import extract_json
from relay.stores import MemoryStore

logger = logging.getLogger(__name__)

MIN_TURNS_FOR_MEMORY = 3
OFFLINE_RESULT_LIMIT = 3


def offline_memory_search(query: str, memories: Sequence[Memory]) -> list[str]:
    """
    Keyword search used when no model is reachable.

    Each keyword (longer than 3 characters) scores +1 when it appears anywhere
    in the memory, +2 more when it appears in the title and +2 more when it
    appears in a tag. Returns up to three formatted matches, best first.
    """
    if not query.strip():
        return []
    keywords = [w for w in query.lower().split() if len(w) > 3]
    if not keywords:
        return []

    scored = []
    for mem in memories:
        haystack = f"{mem.title} {' '.join(mem.tags)} {mem.content}".lower()
        title = mem.title.lower()
        tags = [t.lower() for t in mem.tags]
        score = 0
        for word in keywords:
            if word in haystack:
                score += 1
            if word in title:
                score += 2
            if any(word in t for t in tags):
                score += 2
        if score > 0:
            scored.append((score, mem))

    scored.sort(key=lambda item: item[0], reverse=True)
    return [
        f"[Memory (Offline Match): {mem.title} ({mem.timestamp.isoformat()})]\n{mem.content}"
        for _, mem in scored[:OFFLINE_RESULT_LIMIT]
    ]


class MemoryService:
    RETRIEVER_INSTRUCTION = 'Semantic Memory Retriever. Return JSON array of relevant IDs: ["id1"].'
    ENCODER_INSTRUCTION = (
        'Memory Encoder. Return JSON { "worthy": boolean, "title": string, '
        '"content": string, "tags": string[], "importance": number }.'
    )

    def __init__(self, orchestrator: FallbackOrchestrator, store: MemoryStore):
        self.orchestrator = orchestrator
        self.store = store

    async def retrieve_relevant_memories(self, query: str, policy: PolicySettings) -> list[str]:
        """Formatted memories relevant to ``query``; never raises."""
        memories = list(self.store.list())
        if not memories:
            return []

        index = [{"id": m.id, "title": m.title, "tags": ", ".join(m.tags)} for m in memories]
        try:
            result = await self.orchestrator.execute(
                ExecutionRequest(
                    prompt=f'Query: "{query}"\nMemories: {json.dumps(index)}\nReturn JSON array.',
                    policy=policy,
                    system_instruction=self.RETRIEVER_INSTRUCTION,
                    json_mode=True,
                )
            )
            ids = extract_json(result.text)
            if not isinstance(ids, list):
                raise ValueError(f"Expected a JSON array of ids, got {type(ids).__name__}")
        except Exception as e:
            logger.warning(f"Memory retrieval failed, using offline search: {e}")
            return offline_memory_search(query, memories)

        wanted = {str(i) for i in ids}
        return [f"[Memory: {m.title}]\n{m.content}" for m in memories if m.id in wanted]

    async def create_memory_from_chat(
        self, turns: Sequence[ConversationTurn], policy: PolicySettings
    ) -> Optional[Memory]:
        if len(turns) < MIN_TURNS_FOR_MEMORY:
            return None

        conversation = "\n".join(f"{t.role.value.upper()}: {t.text}" for t in turns)
        try:
            result = await self.orchestrator.execute(
                ExecutionRequest(
                    prompt=f"Analyze:\n{conversation}",
                    policy=policy,
                    system_instruction=self.ENCODER_INSTRUCTION,
                    json_mode=True,
                )
            )
            payload = extract_json(result.text)
            if not isinstance(payload, dict) or not payload.get("worthy"):
                return None
            importance = int(payload.get("importance") or 1)
            memory = Memory(
                id=uuid.uuid4().hex,
                title=payload.get("title") or "Untitled memory",
                content=payload.get("content") or "",
                tags=[str(t) for t in payload.get("tags") or []],
                importance=min(max(importance, 1), 10),
            )
        except Exception as e:
            logger.warning(f"Memory extraction failed: {e}")
            return None

        self.store.add(memory)
        logger.info(f"Stored memory {memory.id}: {memory.title}")
        return memory
