from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from aqua_tracker.domain.errors import ApiFailureError, AuthenticationError, TransportFailureError

# =========================
# RequestOutcome
# =========================
# Every Tracker call resolves to exactly one of these. Callers inspect the
# variant; unwrap() is the bridge to the exception taxonomy.


@dataclass(frozen=True)
class Success:
    payload: Any = None

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> Any:
        return self.payload


@dataclass(frozen=True)
class AuthFailure:
    payload: Any = None
    status: int = 401
    url: str | None = None

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self) -> Any:
        raise AuthenticationError(
            "Tracker rejected the bearer credential", status=self.status, payload=self.payload
        )


@dataclass(frozen=True)
class ApiFailure:
    status: int
    payload: Any = None
    url: str | None = None

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self) -> Any:
        raise ApiFailureError(self.status, self.payload, url=self.url)


@dataclass(frozen=True)
class TransportFailure:
    cause: BaseException = field(compare=False)
    url: str | None = None

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self) -> Any:
        raise TransportFailureError(self.cause, url=self.url)


RequestOutcome = Union[Success, AuthFailure, ApiFailure, TransportFailure]


def describe(outcome: RequestOutcome) -> str:
    """Short human readable form for log lines."""
    if isinstance(outcome, Success):
        return "success"
    if isinstance(outcome, TransportFailure):
        return f"transport failure ({outcome.cause})"
    return f"status {outcome.status}: {outcome.payload!r}"[:500]
