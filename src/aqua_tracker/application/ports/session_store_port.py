from __future__ import annotations

from typing import Any, Protocol

from aqua_tracker.domain.model import Session, TrackerCredentials


class SessionStorePort(Protocol):
    """Owns the session-id -> Session map. Sessions are handed out by reference."""

    def create(
        self,
        credentials: TrackerCredentials,
        *,
        project_id: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> Session:
        """Registers a new session and returns it."""
        ...

    def get(self, session_id: str) -> Session:
        """Returns the live session. Raises SessionNotFound."""
        ...

    def delete(self, session_id: str) -> None:
        """Explicit teardown. Unknown ids are ignored."""
        ...

    def evict_idle(self) -> list[str]:
        """Drops sessions idle past the store's TTL, returning their ids."""
        ...
