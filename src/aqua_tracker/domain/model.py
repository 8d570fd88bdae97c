from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from typing import Any

EXPIRY_SAFETY_MARGIN = timedelta(seconds=60)
_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

# =========================
# Value Objects
# =========================
@dataclass(frozen=True)
class TrackerCredentials:
    """Connection data for one Tracker account. The password never appears in repr."""

    base_url: str
    username: str
    password: str = field(repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    @property
    def api_url(self) -> str:
        return f"{self.base_url}/api"


@dataclass(frozen=True)
class Credential:
    token: str = field(repr=False)
    type: str = "bearer"


@dataclass(frozen=True)
class AuthToken:
    access_token: str = field(repr=False)
    refresh_token: str = field(repr=False)
    expires_at: datetime

    def __post_init__(self) -> None:
        if not self.access_token or not self.refresh_token or self.expires_at is None:
            raise ValueError("AuthToken requires access_token, refresh_token and expires_at")

    @classmethod
    def from_token_response(
        cls,
        data: dict[str, Any],
        *,
        now: datetime,
        previous_refresh_token: str | None = None,
        margin: timedelta = EXPIRY_SAFETY_MARGIN,
    ) -> "AuthToken":
        """Builds a token from a `/token` response body.

        Raises ValueError (or KeyError/TypeError) on a malformed response.
        """
        expires_in = float(data["expires_in"])
        try:
            expires_at = now + timedelta(seconds=expires_in) - margin
        except OverflowError as e:
            raise ValueError(f"expires_in out of range: {data['expires_in']!r}") from e
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or previous_refresh_token or "",
            expires_at=expires_at,
        )

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at

    def expired(self) -> "AuthToken":
        return replace(self, expires_at=_EPOCH)

    def credential(self) -> Credential:
        return Credential(token=self.access_token)


@dataclass(frozen=True)
class LockedItemHandle:
    item_id: str
    item_type: str
    version: int


# =========================
# Entities
# =========================
@dataclass
class Session:
    session_id: str
    credentials: TrackerCredentials
    project_id: str | None = None
    token_state: AuthToken | None = None
    context: dict[str, Any] = field(default_factory=dict)
    last_seen: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def current_task_id(self) -> str | None:
        return self.context.get("task_id")
