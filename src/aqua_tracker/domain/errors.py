from __future__ import annotations

from typing import Any


class TrackerError(Exception):
    """Base class for every failure surfaced by the Tracker integration."""


class InvalidIdentifier(TrackerError):
    """Raw item id is missing or not a usable string."""


class UnresolvedItemType(InvalidIdentifier):
    """No recognizable prefix and no explicit item type: caller must disambiguate."""


class AuthenticationError(TrackerError):
    """Both refresh and password login are exhausted (or the retried call still got a 401)."""

    def __init__(self, message: str, *, status: int | None = None, payload: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.payload = payload


class ApiFailureError(TrackerError):
    def __init__(self, status: int, payload: Any = None, *, url: str | None = None) -> None:
        super().__init__(f"Tracker API call failed with status {status}")
        self.status = status
        self.payload = payload
        self.url = url


class TransportFailureError(TrackerError):
    def __init__(self, cause: BaseException, *, url: str | None = None) -> None:
        super().__init__(f"Tracker unreachable: {cause}")
        self.cause = cause
        self.url = url


class VersionUnavailable(TrackerError):
    def __init__(self, item_type: str, item_id: str) -> None:
        super().__init__(f"Could not retrieve version details for {item_type} {item_id}")
        self.item_type = item_type
        self.item_id = item_id


class LockConflict(TrackerError):
    """The Tracker refused the lock (stale version or already locked)."""

    def __init__(
        self, item_type: str, item_id: str, version: int, *, status: int | None = None, payload: Any = None
    ) -> None:
        super().__init__(f"Could not lock {item_type} {item_id} at version {version}")
        self.item_type = item_type
        self.item_id = item_id
        self.version = version
        self.status = status
        self.payload = payload


class UnlockFailure(TrackerError):
    """Releasing a lock failed. Reported as a diagnostic only, never raised to callers."""

    def __init__(self, item_type: str, item_id: str, cause: BaseException) -> None:
        super().__init__(f"Could not unlock {item_type} {item_id}: {cause}")
        self.item_type = item_type
        self.item_id = item_id
        self.cause = cause


class SessionNotFound(TrackerError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Unknown session {session_id}")
        self.session_id = session_id
