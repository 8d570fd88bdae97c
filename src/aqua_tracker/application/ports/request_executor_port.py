from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from aqua_tracker.domain.model import Credential
from aqua_tracker.domain.outcomes import RequestOutcome

ResponseKind = Literal["json", "bytes"]


@dataclass(frozen=True)
class FormBody:
    """Form-encoded request body (token endpoint)."""

    fields: Mapping[str, str]


@dataclass(frozen=True)
class FileUpload:
    """Multipart request body (attachment upload)."""

    filename: str
    content: bytes = field(repr=False)
    field_name: str = "file"
    content_type: str = "application/octet-stream"


class RequestExecutorPort(Protocol):
    """Performs exactly one HTTP round trip against the Tracker and classifies it.

    Never raises for HTTP or transport problems: the outcome carries them.
    """

    async def execute(
        self,
        endpoint: str,
        method: str,
        credential: Credential | None,
        body: Any = None,
        extra_headers: Mapping[str, str] | None = None,
        response_kind: ResponseKind = "json",
    ) -> RequestOutcome: ...
