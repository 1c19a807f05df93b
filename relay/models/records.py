"""
Records produced or consumed by the application services (skills, memories,
sessions). Storage itself is an external collaborator.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from relay.models.conversation import ConversationTurn


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Skill(BaseModel):
    """Learned skill: a named function the sandbox can execute."""

    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    code: str = Field(..., min_length=1)
    timestamp: datetime = Field(default_factory=_utcnow)


class Memory(BaseModel):
    """Long-term memory distilled from a conversation."""

    id: str
    title: str
    content: str
    tags: list[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_utcnow)
    importance: int = Field(default=1, ge=1, le=10)


class ChatSession(BaseModel):
    """Stored chat session."""

    id: str
    title: str = "New Conversation"
    messages: list[ConversationTurn] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    last_modified: datetime = Field(default_factory=_utcnow)

    @property
    def last_message_preview(self) -> str:
        if not self.messages:
            return ""
        return self.messages[-1].text[:50]


class ExecutionPlan(BaseModel):
    """A matched skill ready to run in the sandbox."""

    skill_name: str
    code: str
    args: list[Any] = Field(default_factory=list)
