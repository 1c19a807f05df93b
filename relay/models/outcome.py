"""
Result models: per-attempt outcomes, model catalogs and final results.
"""

import time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AttemptClassification(str, Enum):
    """
    How one model/credential attempt ended.

    Drives the retry state machine in ``relay.resilience.attempts``:
    - CREDENTIAL_EXHAUSTED, TRANSIENT: next credential, same model
    - MODEL_UNAVAILABLE, MODEL_LOADING: next model
    """

    SUCCESS = "success"
    CREDENTIAL_EXHAUSTED = "credential_exhausted"
    MODEL_UNAVAILABLE = "model_unavailable"
    MODEL_LOADING = "model_loading"
    TRANSIENT = "transient"

    @property
    def abandons_model(self) -> bool:
        return self in (
            AttemptClassification.MODEL_UNAVAILABLE,
            AttemptClassification.MODEL_LOADING,
        )


class ProviderAttemptOutcome(BaseModel):
    """Outcome of a single wire call."""

    classification: AttemptClassification
    text: str = ""
    reason: Optional[str] = None
    status_code: Optional[int] = None

    @model_validator(mode="after")
    def validate_reason(self) -> "ProviderAttemptOutcome":
        if self.classification != AttemptClassification.SUCCESS and not self.reason:
            raise ValueError("Failed outcomes must carry a reason")
        return self

    @property
    def ok(self) -> bool:
        return self.classification == AttemptClassification.SUCCESS

    @classmethod
    def success(cls, text: str) -> "ProviderAttemptOutcome":
        return cls(classification=AttemptClassification.SUCCESS, text=text)

    @classmethod
    def failure(
        cls,
        classification: AttemptClassification,
        reason: str,
        status_code: Optional[int] = None,
    ) -> "ProviderAttemptOutcome":
        return cls(classification=classification, reason=reason, status_code=status_code)


class Citation(BaseModel):
    """Grounding source returned alongside a search-augmented answer."""

    model_config = ConfigDict(frozen=True)

    title: str
    uri: str

    def to_markdown(self) -> str:
        return f"[{self.title}]({self.uri})"


class ExecutionResult(BaseModel):
    """Final answer of one call. ``text`` already contains the Sources section."""

    text: str
    citations: list[Citation] = Field(default_factory=list)
    provider: Optional[str] = None
    model: Optional[str] = None


class ModelCatalog(BaseModel):
    """Snapshot of usable model identifiers for one provider."""

    model_config = ConfigDict(frozen=True)

    provider: str
    models: tuple[str, ...] = ()
    refreshed_at: float = Field(default_factory=time.monotonic)

    @property
    def is_empty(self) -> bool:
        return len(self.models) == 0

    def age_seconds(self, now: Optional[float] = None) -> float:
        return (now if now is not None else time.monotonic()) - self.refreshed_at
