"""
Chat-facing features layered on the Fallback Orchestrator.

ChatService wraps the orchestrator with memory context injection, session
switch detection, URL analysis, deep research and offline cache helpers.
Helpers other than ``get_chat_response`` and the research calls degrade to a
default value instead of raising.
"""

import json
import logging
from typing import Any, Optional, Sequence

from relay.memory.service import MemoryService
from relay.models.conversation import Attachment, ConversationTurn
from relay.models.outcome import ExecutionResult
from relay.models.policy import ChunkCallback, ExecutionRequest, PolicySettings, ProviderName
from relay.models.records import ChatSession
from relay.orchestration.fallback import FallbackOrchestrator
from relay.parsing.json_extractor import extract_json
from relay.stores import SessionStore

logger = logging.getLogger(__name__)

ASSISTANT_INSTRUCTION = (
    "You are an expert software engineer and helpful personal assistant. Respond in Markdown."
)
URL_ANALYST_INSTRUCTION = """You are a Web Content Analyst.
1. If the input is a URL, use your internal knowledge and search tools to understand its content.
2. Provide a concise summary of what the page is about.
3. List key points or topics covered.
4. If it's a technical article, explain the concepts simply.
5. Do NOT generate code unless asked. Focus on analysis."""
RESEARCH_INSTRUCTION = """You are a Senior Market Research Analyst and Tech Reviewer.
1. Perform deep research on the provided topic/product.
2. Look for the latest articles, reviews, specifications and user sentiment.
3. Synthesize multiple sources into a comprehensive report.
4. Structure the report with: Executive Summary, Key Features/Facts, Pros & Cons, Market Sentiment, and Conclusion.
5. Be objective and factual."""


class ChatService:
    def __init__(
        self,
        orchestrator: FallbackOrchestrator,
        memory: Optional[MemoryService] = None,
        sessions: Optional[SessionStore] = None,
    ):
        self.orchestrator = orchestrator
        self.memory = memory
        self.sessions = sessions

    @staticmethod
    def _gemini_policy(policy: PolicySettings) -> PolicySettings:
        return policy.model_copy(update={"provider": ProviderName.GEMINI})

    async def get_chat_response(
        self,
        prompt: str,
        history: Sequence[ConversationTurn],
        policy: PolicySettings,
        attachments: Sequence[Attachment] = (),
        on_chunk: Optional[ChunkCallback] = None,
    ) -> ExecutionResult:
        """
        Answer a chat prompt.

        When there are no attachments, relevant long-term memories are
        prepended to the prompt as a context block.
        """
        final_prompt = prompt
        if not attachments and self.memory is not None:
            memories = await self.memory.retrieve_relevant_memories(prompt, policy)
            if memories:
                context = "\n".join(memories)
                final_prompt = f"\n\n[LONG-TERM MEMORY CONTEXT]:\n{context}\n\n{prompt}"

        return await self.orchestrator.execute(
            ExecutionRequest(
                prompt=final_prompt,
                history=list(history),
                policy=policy,
                system_instruction=ASSISTANT_INSTRUCTION,
                attachments=list(attachments),
                on_chunk=on_chunk,
            )
        )

    async def detect_session_switch(
        self, prompt: str, sessions: Sequence[ChatSession], policy: PolicySettings
    ) -> Optional[str]:
        """Return the id of the session the user wants to resume, if any."""
        if not sessions:
            return None

        summaries = [
            {"id": s.id, "title": s.title, "lastMessage": s.last_message_preview}
            for s in sessions
        ]
        instruction = (
            "Session Manager.\n"
            f'User Prompt: "{prompt}".\n'
            f"Available Sessions: {json.dumps(summaries)}.\n\n"
            "Does the user explicitly want to switch to or resume one of these specific sessions?\n"
            'If yes, return JSON { "switch": true, "sessionId": "..." }.\n'
            'If they are asking a question or starting a new topic, return { "switch": false }.\n'
            'Only switch if the intent is clear (e.g. "back to the project about...").'
        )
        try:
            result = await self.orchestrator.execute(
                ExecutionRequest(
                    prompt="Analyze intent.",
                    policy=policy,
                    system_instruction=instruction,
                    json_mode=True,
                )
            )
            decision = extract_json(result.text)
        except Exception as e:
            logger.warning(f"Session switch detection failed: {e}")
            return None

        if not isinstance(decision, dict) or not decision.get("switch"):
            return None
        session_id = decision.get("sessionId")
        known = {s.id for s in sessions}
        return session_id if session_id in known else None

    async def resume_session(self, prompt: str, policy: PolicySettings) -> Optional[ChatSession]:
        if self.sessions is None:
            return None
        session_id = await self.detect_session_switch(prompt, self.sessions.list(), policy)
        if session_id is None:
            return None
        return self.sessions.get(session_id)

    async def analyze_url_content(self, url: str, policy: PolicySettings) -> str:
        result = await self.orchestrator.execute(
            ExecutionRequest(
                prompt=(
                    f"Analyze this URL: {url}\n\nPlease summarize the content, identifying "
                    "the main topic, author (if known), and key takeaways."
                ),
                policy=self._gemini_policy(policy),
                system_instruction=URL_ANALYST_INSTRUCTION,
                use_tools=True,
            )
        )
        return result.text

    async def perform_deep_research(self, topic: str, policy: PolicySettings) -> str:
        result = await self.orchestrator.execute(
            ExecutionRequest(
                prompt=(
                    f'Conduct a comprehensive analysis and report on: "{topic}".\n'
                    "Find recent information, compare it with competitors if relevant, "
                    "and analyze the general public/expert consensus."
                ),
                policy=self._gemini_policy(policy),
                system_instruction=RESEARCH_INSTRUCTION,
                use_tools=True,
            )
        )
        return result.text

    async def generate_offline_cache(
        self, history: Sequence[ConversationTurn], policy: PolicySettings
    ) -> Optional[dict[str, Any]]:
        """Summarize a conversation into key/value facts for offline use."""
        if len(history) < 2:
            return None
        conversation = "\n".join(f"{t.role.value}: {t.text}" for t in history)
        try:
            result = await self.orchestrator.execute(
                ExecutionRequest(
                    prompt=f"Summarize to JSON key-value:\n{conversation}",
                    policy=policy,
                    json_mode=True,
                )
            )
            cache = extract_json(result.text)
        except Exception as e:
            logger.warning(f"Offline cache generation failed: {e}")
            return None
        return cache if isinstance(cache, dict) else None

    async def are_topics_related(
        self, history: Sequence[ConversationTurn], cache: dict[str, Any], policy: PolicySettings
    ) -> bool:
        recent = [t.text for t in history[-3:]]
        try:
            result = await self.orchestrator.execute(
                ExecutionRequest(
                    prompt=(
                        'Related? "true" or "false".\n'
                        f"Cache: {', '.join(cache.keys())}\nChat: {recent}"
                    ),
                    policy=policy,
                )
            )
        except Exception as e:
            logger.warning(f"Topic relation check failed, assuming related: {e}")
            return True
        return "true" in result.text.lower()
