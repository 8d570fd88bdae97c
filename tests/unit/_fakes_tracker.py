from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from aqua_tracker.application.ports.request_executor_port import FormBody
from aqua_tracker.domain.errors import ApiFailureError
from aqua_tracker.domain.model import AuthToken, Session, TrackerCredentials
from aqua_tracker.domain.outcomes import Success

BASE_URL = "https://aqua.test"
TOKEN_URL = f"{BASE_URL}/api/token"
NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now=NOW) -> None:
        self._now = now
    def now(self):
        return self._now
    def advance(self, **kwargs):
        self._now += timedelta(**kwargs)


@dataclass
class Call:
    url: str
    method: str
    credential: object
    body: object
    headers: object
    response_kind: str

    @property
    def grant_type(self):
        return self.body.fields.get("grant_type") if isinstance(self.body, FormBody) else None


class FakeExecutor:
    """Records calls; answers with handler(call) -> RequestOutcome."""
    def __init__(self, handler) -> None:
        self.handler = handler
        self.calls: list[Call] = []
    async def execute(self, endpoint, method, credential, body=None, extra_headers=None, response_kind="json"):
        call = Call(endpoint, method, credential, body, extra_headers, response_kind)
        self.calls.append(call)
        return self.handler(call)
    def grants(self):
        return [c.grant_type for c in self.calls if c.url == TOKEN_URL]
    def api_calls(self):
        return [c for c in self.calls if c.url != TOKEN_URL]


def token_body(access="access-1", refresh="refresh-1", expires_in=3600):
    body = {"access_token": access, "expires_in": expires_in}
    if refresh is not None:
        body["refresh_token"] = refresh
    return body


def make_session(token: AuthToken | None = None, **context) -> Session:
    return Session(
        session_id="s-1",
        credentials=TrackerCredentials(BASE_URL, "alice", "s3cret"),
        project_id="240",
        token_state=token,
        context=dict(context),
    )


def expired_token(access="old-access", refresh="old-refresh") -> AuthToken:
    return AuthToken(access, refresh, NOW - timedelta(minutes=5))


def valid_token(access="live-access", refresh="live-refresh") -> AuthToken:
    return AuthToken(access, refresh, NOW + timedelta(minutes=30))


def ok(payload=None):
    return Success(payload)


class FakeTracker:
    """In-memory TrackerPort. Records the sequence of operations."""
    def __init__(self, details=None, *, lock_error=None, update_error=None, unlock_error=None,
                 details_error=None, update_result=None, steps=None) -> None:
        self.details = details if details is not None else {"Name": "Item", "Version": {"Version": 7}}
        self.lock_error = lock_error
        self.update_error = update_error
        self.unlock_error = unlock_error
        self.details_error = details_error
        self.update_result = update_result if update_result is not None else {"Id": 1, "Saved": True}
        self.steps = steps if steps is not None else []
        self.log: list[tuple] = []
        self.created: list[dict] = []
    async def get_item_details(self, session, item):
        self.log.append(("details", item.item_type, item.numeric_id))
        if self.details_error:
            raise self.details_error
        return self.details
    async def lock_item(self, session, item, version):
        self.log.append(("lock", item.numeric_id, version))
        if self.lock_error:
            raise self.lock_error
        return None
    async def unlock_item(self, session, item):
        self.log.append(("unlock", item.numeric_id))
        if self.unlock_error:
            raise self.unlock_error
        return None
    async def update_locked_item(self, session, item, body):
        self.log.append(("update", item.numeric_id, body))
        if self.update_error:
            raise self.update_error
        return self.update_result
    async def add_comment(self, session, item, html):
        self.log.append(("comment", item.item_type, item.numeric_id, html))
    async def get_test_steps(self, session, test_case_id):
        self.log.append(("steps", test_case_id))
        return list(self.steps)
    async def create_item(self, session, title, description, *, item_type, project_id=None, parent_requirement_id=None):
        item = {"Id": 100 + len(self.created), "Name": title, "Type": item_type,
                "Project": project_id, "Parent": parent_requirement_id}
        self.created.append(item)
        return item
    def ops(self):
        return [entry[0] for entry in self.log]


def api_error(status=409, payload=None):
    return ApiFailureError(status, payload or {"Message": "conflict"})
