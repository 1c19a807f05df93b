"""
Data models for the Relay orchestration layer.

This package contains Pydantic models for:
    - Conversation: turns, roles and inline attachments
    - Policy: provider choice, credential sets and execution requests
    - Outcome: attempt classification, catalogs and final results
    - Records: skills, memories, sessions and execution plans

Example:
    >>> from relay.models import ExecutionRequest, PolicySettings
    >>> request = ExecutionRequest(prompt="explain recursion")
"""

# Conversation models
from relay.models.conversation import (
    Attachment,
    ConversationTurn,
    Role,
)

# Outcome models
from relay.models.outcome import (
    AttemptClassification,
    Citation,
    ExecutionResult,
    ModelCatalog,
    ProviderAttemptOutcome,
)

# Policy models
from relay.models.policy import (
    ChunkCallback,
    ExecutionRequest,
    PolicySettings,
    ProviderName,
)

# Record models
from relay.models.records import (
    ChatSession,
    ExecutionPlan,
    Memory,
    Skill,
)

__all__ = [
    # Conversation models
    "Attachment",
    "ConversationTurn",
    "Role",
    # Outcome models
    "AttemptClassification",
    "Citation",
    "ExecutionResult",
    "ModelCatalog",
    "ProviderAttemptOutcome",
    # Policy models
    "ChunkCallback",
    "ExecutionRequest",
    "PolicySettings",
    "ProviderName",
    # Record models
    "ChatSession",
    "ExecutionPlan",
    "Memory",
    "Skill",
]
