from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from typing import Any

from aqua_tracker.application.ports.session_store_port import SessionStorePort
from aqua_tracker.application.use_cases.auth_token_manager import Clock, SystemClock
from aqua_tracker.domain.errors import SessionNotFound
from aqua_tracker.domain.model import Session, TrackerCredentials

logger = logging.getLogger(__name__)


class InMemorySessionStore(SessionStorePort):
    """Process-local session map. Not persistent; secrets never leave memory."""

    def __init__(self, *, idle_ttl_hours: float = 12, clock: Clock | None = None) -> None:
        self._sessions: dict[str, Session] = {}
        self.idle_ttl = timedelta(hours=idle_ttl_hours)
        self.clock = clock or SystemClock()

    def __len__(self) -> int:
        return len(self._sessions)

    def create(
        self,
        credentials: TrackerCredentials,
        *,
        project_id: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> Session:
        session = Session(
            session_id=str(uuid.uuid4()),
            credentials=credentials,
            project_id=project_id,
            context=dict(context or {}),
            last_seen=self.clock.now(),
        )
        self._sessions[session.session_id] = session
        logger.info("New session %s for user %s", session.session_id, credentials.username)
        return session

    def get(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        session.last_seen = self.clock.now()
        return session

    def delete(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is not None:
            logger.info("Session closed: %s", session_id)

    def evict_idle(self) -> list[str]:
        cutoff = self.clock.now() - self.idle_ttl
        stale = [sid for sid, s in self._sessions.items() if s.last_seen < cutoff]
        for sid in stale:
            del self._sessions[sid]
        if stale:
            logger.info("Evicted %d idle session(s)", len(stale))
        return stale
