# tests/test_followups.py
import pytest
from pymongo.errors import OperationFailure

from conftest import COURSE_ID, USER_ID
from coursehub.core.errors import StoreError
from coursehub.core.followups import run_followup
from coursehub.courses import enrollment_service
from coursehub.courses.database import _run


async def test_followup_returns_result():
    async def step(value):
        return value * 2

    assert await run_followup("double", step, 21) == 42


async def test_followup_retries_then_succeeds():
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise RuntimeError("store busy")
        return "ok"

    assert await run_followup("flaky", flaky, max_attempts=3) == "ok"
    assert len(attempts) == 3


async def test_followup_gives_up_quietly():
    attempts = []

    async def broken():
        attempts.append(1)
        raise RuntimeError("down")

    assert await run_followup("broken", broken, max_attempts=2) is None
    assert len(attempts) == 2


async def test_non_idempotent_followup_runs_once_on_unknown_failure():
    attempts = []

    async def increment():
        attempts.append(1)
        raise RuntimeError("connection reset after send")

    assert await run_followup("increment", increment, max_attempts=3, idempotent=False) is None
    assert len(attempts) == 1


async def test_non_idempotent_followup_retries_when_write_not_applied():
    attempts = []

    async def increment():
        attempts.append(1)
        if len(attempts) < 2:
            raise StoreError("Store operation failed: increment", not_applied=True)
        return True

    assert await run_followup("increment", increment, max_attempts=3, idempotent=False) is True
    assert len(attempts) == 2


async def test_non_idempotent_followup_stops_on_ambiguous_store_error():
    attempts = []

    async def notify():
        attempts.append(1)
        raise StoreError("Store operation failed: create notifications")

    assert await run_followup("notify", notify, max_attempts=3, idempotent=False) is None
    assert len(attempts) == 1


async def test_store_rejection_is_marked_not_applied():
    async def rejected():
        raise OperationFailure("not authorized on coursehub")

    with pytest.raises(StoreError) as exc:
        await _run("increment courses.students", rejected())
    assert exc.value.not_applied


async def test_enrollment_counter_not_retried_after_ambiguous_failure(db, course, monkeypatch):
    calls = []

    async def flaky_increment(db, course_id):
        calls.append(course_id)
        raise StoreError("Store operation failed: increment courses.students", error="socket closed")

    monkeypatch.setattr(enrollment_service, "increment_students", flaky_increment)
    await enrollment_service.enroll_user(db, USER_ID, COURSE_ID)

    assert calls == [COURSE_ID]
