"""
Collaborator interfaces consumed by the application services.

Storage and sandboxed execution live outside this package; these Protocols
describe only the call shapes the services depend on.
"""

from typing import Any, Optional, Protocol, Sequence

from relay.models.records import ChatSession, Memory


class MemoryStore(Protocol):
    """Read/write access to long-term memories."""

    def list(self) -> Sequence[Memory]:
        ...

    def add(self, record: Memory) -> None:
        ...


class SessionStore(Protocol):
    """Read access to stored chat sessions."""

    def list(self) -> Sequence[ChatSession]:
        ...

    def get(self, session_id: str) -> Optional[ChatSession]:
        ...


class Sandbox(Protocol):
    """Isolated code execution; raises on failure."""

    async def run(self, code: str, args: Sequence[Any]) -> Any:
        ...
