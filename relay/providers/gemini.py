"""
Primary-model adapter for Google Gemini (google-genai SDK).

Gemini is the "always available" provider: it uses one process-wide
credential from configuration, supports inline binary attachments, native
JSON output, search grounding and an extended reasoning budget.
"""

import logging
from typing import Any, Iterable, Optional, Sequence

from google import genai
from google.genai import types

from relay.config import LLMConfig
from relay.models.conversation import Attachment, ConversationTurn, Role
from relay.models.outcome import Citation, ExecutionResult
from relay.models.policy import ChunkCallback
from relay.providers.streaming import emit_chunk
from relay.resilience.errors import ConfigurationError, MalformedOutputError

logger = logging.getLogger(__name__)

PROVIDER = "gemini"


def _attachment_part(attachment: Attachment) -> types.Part:
    return types.Part.from_bytes(data=attachment.raw_bytes(), mime_type=attachment.mime_type)


def build_contents(
    history: Sequence[ConversationTurn],
    prompt: str,
    attachments: Sequence[Attachment] = (),
) -> list[types.Content]:
    """Translate history plus the new prompt into Gemini contents, in order."""
    contents = []
    for turn in history:
        parts = [types.Part(text=turn.text)]
        parts.extend(_attachment_part(a) for a in turn.attachments)
        contents.append(
            types.Content(role="user" if turn.role == Role.USER else "model", parts=parts)
        )

    user_parts = [types.Part(text=prompt)]
    user_parts.extend(_attachment_part(a) for a in attachments)
    contents.append(types.Content(role="user", parts=user_parts))
    return contents


def build_config(
    system_instruction: Optional[str] = None,
    json_mode: bool = False,
    use_search: bool = False,
    thinking_budget: Optional[int] = None,
) -> types.GenerateContentConfig:
    """Build the generation config bag for one call."""
    kwargs: dict[str, Any] = {}
    if system_instruction:
        kwargs["system_instruction"] = system_instruction
    if json_mode:
        kwargs["response_mime_type"] = "application/json"
    elif use_search:
        kwargs["tools"] = [types.Tool(google_search=types.GoogleSearch())]
    if thinking_budget is not None:
        kwargs["thinking_config"] = types.ThinkingConfig(thinking_budget=thinking_budget)
    return types.GenerateContentConfig(**kwargs)


def extract_citations(candidates: Optional[Iterable[Any]]) -> list[Citation]:
    """Collect web grounding sources from the first candidate, deduplicated."""
    for candidate in candidates or []:
        metadata = getattr(candidate, "grounding_metadata", None)
        chunks = getattr(metadata, "grounding_chunks", None) or []
        citations: dict[str, Citation] = {}
        for chunk in chunks:
            web = getattr(chunk, "web", None)
            uri = getattr(web, "uri", None)
            if not uri:
                continue
            citation = Citation(title=getattr(web, "title", None) or uri, uri=uri)
            citations.setdefault(citation.to_markdown(), citation)
        return list(citations.values())
    return []


def format_sources(citations: Sequence[Citation]) -> str:
    if not citations:
        return ""
    lines = "\n".join(c.to_markdown() for c in citations)
    return f"\n\n**Sources:**\n{lines}"


class GeminiProvider:
    """Send a conversation to Gemini, optionally streaming tokens."""

    def __init__(self, config: LLMConfig, client: Optional[genai.Client] = None):
        self.config = config
        self._client = client

    @property
    def available(self) -> bool:
        return self._client is not None or self.config.has_gemini

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if not self.config.gemini_api_key:
                raise ConfigurationError("Gemini API key not configured (LLM_GEMINI_API_KEY)")
            self._client = genai.Client(
                api_key=self.config.gemini_api_key,
                http_options=types.HttpOptions(
                    timeout=self.config.gemini_timeout_seconds * 1000
                ),
            )
        return self._client

    async def send(
        self,
        prompt: str,
        history: Sequence[ConversationTurn] = (),
        *,
        model: Optional[str] = None,
        system_instruction: Optional[str] = None,
        json_mode: bool = False,
        use_search: bool = False,
        thinking_budget: Optional[int] = None,
        attachments: Sequence[Attachment] = (),
        on_chunk: Optional[ChunkCallback] = None,
    ) -> ExecutionResult:
        """
        Generate a response.

        Args:
            prompt: New user message
            history: Prior turns, chronological
            model: Gemini model id (defaults to the configured fast model)
            system_instruction: Optional system prompt
            json_mode: Constrain output to a single JSON value
            use_search: Enable Google Search grounding (ignored in JSON mode)
            thinking_budget: Extended reasoning budget in tokens
            attachments: Inline binary parts for the new message
            on_chunk: If set, stream and forward each text fragment

        Returns:
            ExecutionResult whose text carries a Sources section when grounded

        Raises:
            ConfigurationError: If no Gemini credential is configured
            MalformedOutputError: If the response contains no text
        """
        model = model or self.config.gemini_default_model
        contents = build_contents(history, prompt, attachments)
        config = build_config(system_instruction, json_mode, use_search, thinking_budget)

        if on_chunk is not None:
            text, citations = await self._stream(model, contents, config, on_chunk)
        else:
            response = await self.client.aio.models.generate_content(
                model=model, contents=contents, config=config
            )
            text = response.text or ""
            citations = extract_citations(response.candidates)

        sources = format_sources(citations)
        if not text and not sources:
            raise MalformedOutputError(f"Gemini model {model} returned an empty response")

        if sources and on_chunk is not None:
            await emit_chunk(on_chunk, sources)

        logger.info(f"Gemini {model} answered ({len(text)} chars, {len(citations)} sources)")
        return ExecutionResult(
            text=text + sources, citations=citations, provider=PROVIDER, model=model
        )

    async def _stream(
        self,
        model: str,
        contents: list[types.Content],
        config: types.GenerateContentConfig,
        on_chunk: ChunkCallback,
    ) -> tuple[str, list[Citation]]:
        stream = await self.client.aio.models.generate_content_stream(
            model=model, contents=contents, config=config
        )
        pieces = []
        # Grounding metadata may be spread over several chunks
        citations: dict[str, Citation] = {}
        async for chunk in stream:
            text = chunk.text
            if text:
                await emit_chunk(on_chunk, text)
                pieces.append(text)
            for citation in extract_citations(chunk.candidates):
                citations.setdefault(citation.to_markdown(), citation)
        return "".join(pieces), list(citations.values())
