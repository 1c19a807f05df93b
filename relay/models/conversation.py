"""
Conversation models shared by every provider adapter.

History order is chronological and is preserved when translated into each
provider's wire shape.
"""

import base64
import binascii
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class Role(str, Enum):
    """Speaker of a conversation turn."""

    USER = "user"
    ASSISTANT = "assistant"


class Attachment(BaseModel):
    """Inline binary attachment (image, PDF, ...) sent with a prompt."""

    mime_type: str = Field(..., min_length=1, max_length=255)
    data: str = Field(..., description="Base64-encoded payload")

    @field_validator("data")
    @classmethod
    def validate_base64(cls, v: str) -> str:
        try:
            base64.b64decode(v, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Attachment data is not valid base64: {e}") from e
        return v

    def raw_bytes(self) -> bytes:
        return base64.b64decode(self.data)


class ConversationTurn(BaseModel):
    """One message in the chat history."""

    role: Role
    text: str = ""
    attachments: list[Attachment] = Field(default_factory=list)

    @property
    def is_user(self) -> bool:
        return self.role == Role.USER
