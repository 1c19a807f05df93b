"""
Policy and request models.

A PolicySettings value is a snapshot taken per call: the core never mutates it.
Credential rotation (which key is "active") is owned by the caller; the
indices are carried along only so callers can round-trip their settings.
"""

from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from relay.models.conversation import Attachment, ConversationTurn

ChunkCallback = Callable[[str], Any]


class ProviderName(str, Enum):
    """Backends the orchestrator can route to."""

    GEMINI = "gemini"
    OPENROUTER = "openrouter"
    HUGGINGFACE = "huggingface"
    HYBRID = "hybrid"


class PolicySettings(BaseModel):
    """User-selected routing policy plus per-user credential sets."""

    model_config = ConfigDict(frozen=True)

    provider: ProviderName = ProviderName.GEMINI
    complex_task_mode: bool = False
    openrouter_api_keys: tuple[str, ...] = ()
    huggingface_api_keys: tuple[str, ...] = ()
    openrouter_key_index: int = Field(default=0, ge=0)
    huggingface_key_index: int = Field(default=0, ge=0)

    def __repr__(self) -> str:
        return (
            f"PolicySettings(provider={self.provider.value}, "
            f"complex_task_mode={self.complex_task_mode}, "
            f"openrouter_keys={len(self.openrouter_api_keys)}, "
            f"huggingface_keys={len(self.huggingface_api_keys)})"
        )

    __str__ = __repr__

    @property
    def has_openrouter(self) -> bool:
        return len(self.openrouter_api_keys) > 0

    @property
    def has_huggingface(self) -> bool:
        return len(self.huggingface_api_keys) > 0

    def with_credential_added(self, provider: ProviderName, key: str) -> "PolicySettings":
        """Return a copy with ``key`` appended to the provider's credential set."""
        field, _ = self._credential_fields(provider)
        keys = getattr(self, field) + (key,)
        return self.model_copy(update={field: keys})

    def with_credential_removed(self, provider: ProviderName, key: str) -> "PolicySettings":
        """
        Return a copy with every occurrence of ``key`` removed.

        The active index is clamped so it still points inside the set.
        """
        field, index_field = self._credential_fields(provider)
        keys = tuple(k for k in getattr(self, field) if k != key)
        index = getattr(self, index_field)
        if index >= len(keys):
            index = max(len(keys) - 1, 0)
        return self.model_copy(update={field: keys, index_field: index})

    @staticmethod
    def _credential_fields(provider: ProviderName) -> tuple[str, str]:
        if provider == ProviderName.OPENROUTER:
            return "openrouter_api_keys", "openrouter_key_index"
        if provider == ProviderName.HUGGINGFACE:
            return "huggingface_api_keys", "huggingface_key_index"
        raise ValueError(f"Provider {provider.value} has no user credential set")


class ExecutionRequest(BaseModel):
    """Everything the Fallback Orchestrator needs for one call."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    prompt: str
    history: list[ConversationTurn] = Field(default_factory=list)
    policy: PolicySettings = Field(default_factory=PolicySettings)
    system_instruction: Optional[str] = None
    json_mode: bool = False
    attachments: list[Attachment] = Field(default_factory=list)
    use_tools: bool = False
    on_chunk: Optional[ChunkCallback] = Field(default=None, exclude=True)
    # 0 for top-level calls; synthesis calls run at depth 1 and never fan out again
    synthesis_depth: int = Field(default=0, ge=0, le=1)

    @property
    def is_synthesis(self) -> bool:
        return self.synthesis_depth > 0
