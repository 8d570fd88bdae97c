from __future__ import annotations
import asyncio

import pytest

from aqua_tracker.application.use_cases.locked_item_updater import (
    LockedItemUpdater, RunLockedUpdateUseCase, UpdateState, read_version,
)
from aqua_tracker.domain.errors import (
    ApiFailureError, AuthenticationError, InvalidIdentifier, LockConflict, TransportFailureError,
    UnresolvedItemType, VersionUnavailable,
)
from aqua_tracker.domain.identifiers import ItemIdentifier
from aqua_tracker.domain.payloads import CollectionChanges, TestCaseUpdate
from tests.unit._fakes_tracker import FakeTracker, api_error, make_session, valid_token

TC = ItemIdentifier("55", "TestCase")


def updater(tracker):
    return LockedItemUpdater(tracker, make_session(valid_token()), TC)


@pytest.mark.asyncio
async def test_full_sequence_normalizes_steps_and_returns_mutation_response():
    tracker = FakeTracker(details={"Version": {"Version": 7}}, update_result={"Saved": 1})
    u = updater(tracker)
    result = await u.run({"TestSteps": {"Added": [{"Name": "stepA"}]}})

    assert result == {"Saved": 1}
    assert tracker.ops() == ["details", "lock", "update", "unlock"]
    assert tracker.log[1] == ("lock", "55", 7)
    assert tracker.log[2][2] == {"TestSteps": {"Added": [{"Name": "stepA"}], "Deleted": []}}
    assert u.state is UpdateState.UNLOCKED
    assert u.handle.version == 7
    assert u.unlock_failure is None


@pytest.mark.asyncio
async def test_typed_payload_submits_both_collections():
    tracker = FakeTracker()
    await updater(tracker).run(TestCaseUpdate(test_steps=CollectionChanges(deleted=[3])))
    assert tracker.log[2][2] == {"TestSteps": {"Added": [], "Deleted": [3]}}


@pytest.mark.asyncio
async def test_mutation_error_still_unlocks_once_and_is_reported():
    err = ApiFailureError(400, {"Message": "bad field"})
    tracker = FakeTracker(update_error=err, unlock_error=api_error(500))
    u = updater(tracker)
    with pytest.raises(ApiFailureError) as exc:
        await u.run({"Name": "x"})
    assert exc.value is err
    assert tracker.ops().count("unlock") == 1
    assert u.state is UpdateState.FAILED
    assert u.unlock_failure is not None


@pytest.mark.asyncio
async def test_unexpected_mutation_exception_still_unlocks():
    tracker = FakeTracker(update_error=RuntimeError("kaboom"))
    with pytest.raises(RuntimeError):
        await updater(tracker).run({})
    assert tracker.ops() == ["details", "lock", "update", "unlock"]


@pytest.mark.asyncio
async def test_unlock_failure_does_not_mask_success():
    tracker = FakeTracker(unlock_error=TransportFailureError(ConnectionError("reset")))
    u = updater(tracker)
    assert await u.run({}) == {"Id": 1, "Saved": True}
    assert isinstance(u.unlock_failure.cause, TransportFailureError)
    assert u.state is UpdateState.UNLOCKED


@pytest.mark.asyncio
async def test_unexpected_unlock_exception_does_not_mask_success():
    tracker = FakeTracker(unlock_error=RuntimeError("client has been closed"))
    u = updater(tracker)
    assert await u.run({}) == {"Id": 1, "Saved": True}
    assert isinstance(u.unlock_failure.cause, RuntimeError)
    assert tracker.ops() == ["details", "lock", "update", "unlock"]


@pytest.mark.asyncio
async def test_unexpected_unlock_exception_does_not_replace_mutation_error():
    err = ApiFailureError(400, {"Message": "bad field"})
    tracker = FakeTracker(update_error=err, unlock_error=RuntimeError("client has been closed"))
    with pytest.raises(ApiFailureError) as exc:
        await updater(tracker).run({})
    assert exc.value is err


@pytest.mark.parametrize("details", [{}, {"Version": None}, {"Version": {}}, {"Version": 7}])
@pytest.mark.asyncio
async def test_missing_version_means_no_lock_and_no_unlock(details):
    tracker = FakeTracker(details=details)
    with pytest.raises(VersionUnavailable):
        await updater(tracker).run({})
    assert tracker.ops() == ["details"]


@pytest.mark.asyncio
async def test_failed_version_fetch_issues_no_lock_or_unlock():
    tracker = FakeTracker(details_error=api_error(404))
    u = updater(tracker)
    with pytest.raises(ApiFailureError):
        await u.run({})
    assert tracker.ops() == ["details"]
    assert u.state is UpdateState.FAILED


@pytest.mark.asyncio
async def test_version_zero_is_a_valid_version():
    tracker = FakeTracker(details={"Version": {"Version": 0}})
    await updater(tracker).run({})
    assert tracker.log[1] == ("lock", "55", 0)


@pytest.mark.asyncio
async def test_rejected_lock_is_lock_conflict_without_mutation_or_unlock():
    tracker = FakeTracker(lock_error=api_error(409, {"Message": "locked by bob"}))
    with pytest.raises(LockConflict) as exc:
        await updater(tracker).run({})
    assert exc.value.version == 7
    assert exc.value.status == 409
    assert tracker.ops() == ["details", "lock"]


@pytest.mark.asyncio
async def test_auth_error_during_lock_propagates_unchanged():
    tracker = FakeTracker(lock_error=AuthenticationError("nope"))
    with pytest.raises(AuthenticationError):
        await updater(tracker).run({})
    assert "unlock" not in tracker.ops()


@pytest.mark.asyncio
async def test_cancelled_caller_still_releases_lock():
    started = asyncio.Event()
    tracker = FakeTracker()

    async def slow_update(session, item, body):
        started.set()
        await asyncio.sleep(10)

    tracker.update_locked_item = slow_update
    task = asyncio.create_task(updater(tracker).run({}))
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert tracker.ops()[-1] == "unlock"


def test_read_version():
    assert read_version({"Version": {"Version": 3}}) == 3
    assert read_version(None) is None


@pytest.mark.asyncio
async def test_use_case_parses_prefixed_id():
    tracker = FakeTracker()
    await RunLockedUpdateUseCase(tracker).execute(make_session(valid_token()), "tc901", None, {})
    assert tracker.log[0] == ("details", "TestCase", "901")


@pytest.mark.asyncio
async def test_use_case_rejects_ambiguous_id_before_any_call():
    tracker = FakeTracker()
    with pytest.raises(UnresolvedItemType):
        await RunLockedUpdateUseCase(tracker).execute(make_session(), "901", None, {})
    assert tracker.log == []


@pytest.mark.asyncio
async def test_use_case_falls_back_to_session_task():
    tracker = FakeTracker()
    session = make_session(valid_token(), task_id="TC77")
    await RunLockedUpdateUseCase(tracker).execute(session, "%TASK_CONTEXT_TASK_ID%", None, {})
    assert tracker.log[0] == ("details", "TestCase", "77")


@pytest.mark.asyncio
async def test_use_case_without_id_or_session_task_is_invalid():
    tracker = FakeTracker()
    with pytest.raises(InvalidIdentifier):
        await RunLockedUpdateUseCase(tracker).execute(make_session(), None, None, {})
    assert tracker.log == []
