from __future__ import annotations
import pytest

from aqua_tracker.domain.errors import SessionNotFound
from aqua_tracker.domain.model import TrackerCredentials
from aqua_tracker.infrastructure.adapters.session.memory_store import InMemorySessionStore
from tests.unit._fakes_tracker import FixedClock

CREDS = TrackerCredentials("https://aqua.test/", "alice", "s3cret")


def test_create_get_delete():
    store = InMemorySessionStore(clock=FixedClock())
    session = store.create(CREDS, project_id="240", context={"task_id": "TC1"})
    assert store.get(session.session_id) is session
    assert session.credentials.api_url == "https://aqua.test/api"
    assert session.current_task_id == "TC1"
    store.delete(session.session_id)
    store.delete(session.session_id)
    with pytest.raises(SessionNotFound):
        store.get(session.session_id)


def test_sessions_are_independent():
    store = InMemorySessionStore(clock=FixedClock())
    a, b = store.create(CREDS), store.create(CREDS)
    assert a.session_id != b.session_id
    assert len(store) == 2


def test_idle_sessions_are_evicted():
    clock = FixedClock()
    store = InMemorySessionStore(idle_ttl_hours=1, clock=clock)
    old = store.create(CREDS)
    clock.advance(minutes=50)
    fresh = store.create(CREDS)
    clock.advance(minutes=20)
    assert store.evict_idle() == [old.session_id]
    assert store.get(fresh.session_id) is fresh


def test_password_is_not_in_repr():
    assert "s3cret" not in repr(CREDS)
