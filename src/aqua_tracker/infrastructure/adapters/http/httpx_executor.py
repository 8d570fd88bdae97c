from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from aqua_tracker.application.ports.request_executor_port import (
    FileUpload,
    FormBody,
    RequestExecutorPort,
    ResponseKind,
)
from aqua_tracker.domain.model import Credential
from aqua_tracker.domain.outcomes import (
    ApiFailure,
    AuthFailure,
    RequestOutcome,
    Success,
    TransportFailure,
)
from aqua_tracker.metrics import TRACKER_REQUESTS

logger = logging.getLogger(__name__)


def decode_binary_error(content: bytes | None) -> Any:
    """Best-effort JSON view of a binary error body, for diagnostics only. Never raises."""
    content = content or b""
    try:
        return json.loads(content.decode("utf-8"))
    except (ValueError, RecursionError):
        return f"[Non-JSON error response with binary request. Body length: {len(content)}]"


def _json_or_text(resp: httpx.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except (ValueError, RecursionError):
        return resp.text


class HttpxRequestExecutor(RequestExecutorPort):
    def __init__(
        self,
        timeout: float = 45.0,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Tracker request executor backed by a shared httpx.AsyncClient.

        - One HTTP round trip per call, no retries
        - 401 -> AuthFailure, other non-2xx -> ApiFailure, no response -> TransportFailure

        Args:
            timeout (float, optional): Timeout for requests. Defaults to 45.0.
            transport (httpx.AsyncBaseTransport | None, optional): Custom transport, e.g. httpx.MockTransport.
        """
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={
                "Accept": "application/json",
                "User-Agent": "aqua-tracker/0.1 httpx",
            },
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _build_request(
        self,
        endpoint: str,
        method: str,
        credential: Credential | None,
        body: Any,
        extra_headers: Mapping[str, str] | None,
    ) -> httpx.Request:
        headers: dict[str, str] = {}
        if credential is not None and credential.type == "bearer":
            headers["Authorization"] = f"Bearer {credential.token}"
        if extra_headers:
            headers.update(extra_headers)

        if isinstance(body, FormBody):
            return self._client.build_request(method, endpoint, data=dict(body.fields), headers=headers)
        if isinstance(body, FileUpload):
            files = {body.field_name: (body.filename, body.content, body.content_type)}
            return self._client.build_request(method, endpoint, files=files, headers=headers)
        if body is not None:
            return self._client.build_request(method, endpoint, json=body, headers=headers)
        return self._client.build_request(method, endpoint, headers=headers)

    async def execute(
        self,
        endpoint: str,
        method: str,
        credential: Credential | None,
        body: Any = None,
        extra_headers: Mapping[str, str] | None = None,
        response_kind: ResponseKind = "json",
    ) -> RequestOutcome:
        """Performs the request and classifies the result.

        Args:
            endpoint (str): Absolute Tracker URL.
            method (str): HTTP method.
            credential (Credential | None): Bearer credential; None for token calls.
            body (Any, optional): JSON value, FormBody or FileUpload.
            extra_headers (Mapping[str, str] | None, optional): Headers to include.
            response_kind (ResponseKind, optional): "json" or "bytes".

        Returns:
            RequestOutcome: exactly one of Success, AuthFailure, ApiFailure, TransportFailure.
        """
        method = method.upper()
        try:
            request = self._build_request(endpoint, method, credential, body, extra_headers)
            resp = await self._client.send(request)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error("Error during Tracker call %s %s: %s", method, endpoint, e)
            TRACKER_REQUESTS.labels(method=method, outcome="transport_failure").inc()
            return TransportFailure(cause=e, url=endpoint)

        if resp.status_code == 401:
            TRACKER_REQUESTS.labels(method=method, outcome="auth_failure").inc()
            payload = decode_binary_error(resp.content) if response_kind == "bytes" else _json_or_text(resp)
            return AuthFailure(payload=payload, url=endpoint)

        if resp.status_code < 200 or resp.status_code >= 300:
            if response_kind == "bytes":
                payload = decode_binary_error(resp.content)
            else:
                payload = _json_or_text(resp)
            logger.error(
                "Error during Tracker call %s %s: status %s %s",
                method,
                endpoint,
                resp.status_code,
                json.dumps(payload, default=str)[:2000],
            )
            TRACKER_REQUESTS.labels(method=method, outcome="api_failure").inc()
            return ApiFailure(status=resp.status_code, payload=payload, url=endpoint)

        TRACKER_REQUESTS.labels(method=method, outcome="success").inc()
        if response_kind == "bytes":
            return Success(payload=resp.content)
        return Success(payload=_json_or_text(resp))
