# tests/test_progress.py
import asyncio

import pytest

from coursehub.core.errors import ValidationError
from coursehub.courses.database import CERTIFICATES, ENROLLMENTS, LESSONS, NOTIFICATIONS, PROGRESS
from coursehub.courses import progress_service
from coursehub.courses.enrollment_service import enroll_user
from coursehub.courses.models import ProgressAction
from coursehub.courses.progress_service import calculate_completion, parse_action, percent, update_lesson_progress

from conftest import COURSE_ID, LESSON_IDS, USER_ID


def progress_body(lesson_id, action=None):
    body = {"userId": USER_ID, "courseId": COURSE_ID, "lessonId": lesson_id}
    if action is not None:
        body["action"] = action
    return body


def test_percent_rounds_half_up():
    assert percent(1, 3) == 33
    assert percent(2, 3) == 67
    assert percent(1, 8) == 13
    assert percent(1, 2) == 50
    assert percent(0, 0) == 0


def test_calculate_completion_ignores_unknown_lessons():
    assert calculate_completion(["L1", "L2", "OLD"], ["L1", "L2", "L3", "L4"]) == 50
    assert calculate_completion(["OLD"], []) == 0


def test_parse_action():
    assert parse_action(None) is ProgressAction.COMPLETE
    assert parse_action("uncomplete") is ProgressAction.UNCOMPLETE
    with pytest.raises(ValidationError):
        parse_action("completed")


async def test_complete_one_lesson(client, db, course):
    await enroll_user(db, USER_ID, COURSE_ID)

    resp = await client.post("/functions/updateProgress", json=progress_body(LESSON_IDS[0]))
    assert resp.status_code == 200
    body = resp.json()
    assert body["completionPercentage"] == 25
    assert body["progress"]["completedLessons"] == [LESSON_IDS[0]]
    assert body["progress"]["lastAccessed"] is not None


async def test_complete_is_idempotent(client, db, course):
    await enroll_user(db, USER_ID, COURSE_ID)
    await client.post("/functions/updateProgress", json=progress_body(LESSON_IDS[0]))
    resp = await client.post("/functions/updateProgress", json=progress_body(LESSON_IDS[0], "complete"))

    assert resp.json()["progress"]["completedLessons"] == [LESSON_IDS[0]]
    assert resp.json()["completionPercentage"] == 25


async def test_complete_then_uncomplete_round_trip(client, db, course):
    await enroll_user(db, USER_ID, COURSE_ID)
    await client.post("/functions/updateProgress", json=progress_body(LESSON_IDS[0]))
    await client.post("/functions/updateProgress", json=progress_body(LESSON_IDS[1]))
    resp = await client.post("/functions/updateProgress", json=progress_body(LESSON_IDS[1], "uncomplete"))

    body = resp.json()
    assert body["progress"]["completedLessons"] == [LESSON_IDS[0]]
    assert body["completionPercentage"] == 25


async def test_uncomplete_missing_lesson_is_noop(client, db, course):
    await enroll_user(db, USER_ID, COURSE_ID)
    resp = await client.post("/functions/updateProgress", json=progress_body(LESSON_IDS[2], "uncomplete"))
    assert resp.status_code == 200
    assert resp.json()["progress"]["completedLessons"] == []
    assert resp.json()["completionPercentage"] == 0


async def test_invalid_action_rejected(client, db, course):
    await enroll_user(db, USER_ID, COURSE_ID)
    resp = await client.post("/functions/updateProgress", json=progress_body(LESSON_IDS[0], "completed"))
    assert resp.status_code == 400
    progress = await db[PROGRESS].find_one({"user_id": USER_ID})
    assert progress["completed_lessons"] == []


async def test_completing_every_lesson_finishes_course(client, db, course):
    await enroll_user(db, USER_ID, COURSE_ID)
    for lesson_id in LESSON_IDS:
        resp = await client.post("/functions/updateProgress", json=progress_body(lesson_id))

    assert resp.json()["completionPercentage"] == 100

    enrollment = await db[ENROLLMENTS].find_one({"user_id": USER_ID})
    assert enrollment["status"] == "completed"
    assert enrollment["completed_at"] is not None

    certificate = await db[CERTIFICATES].find_one({"user_id": USER_ID, "course_id": COURSE_ID})
    assert certificate["course_name"] == "Python 101"
    assert certificate["user_name"] == "Alice"
    assert certificate["instructor_name"] == "Dr. Grace"
    assert certificate["certificate_number"].startswith("CERT-")

    titles = [n["title"] for n in await db[NOTIFICATIONS].find({"user_id": USER_ID}).to_list(None)]
    assert "Course Completed!" in titles
    assert "Certificate Issued" in titles


async def test_recompleting_a_finished_course_keeps_one_certificate(client, db, course):
    await enroll_user(db, USER_ID, COURSE_ID)
    for lesson_id in LESSON_IDS:
        await client.post("/functions/updateProgress", json=progress_body(lesson_id))
    await client.post("/functions/updateProgress", json=progress_body(LESSON_IDS[0], "uncomplete"))
    await client.post("/functions/updateProgress", json=progress_body(LESSON_IDS[0]))

    assert await db[CERTIFICATES].count_documents({"user_id": USER_ID}) == 1


async def test_progress_without_enrollment(db, course):
    progress = await update_lesson_progress(db, USER_ID, COURSE_ID, LESSON_IDS[0])
    assert progress.completed_lessons == [LESSON_IDS[0]]
    assert progress.completion_percentage == 25
    assert await db[ENROLLMENTS].count_documents({}) == 0


async def test_course_without_lessons_reports_zero(db):
    progress = await update_lesson_progress(db, USER_ID, "COURSE_EMPTY", "LESSON_X")
    assert progress.completed_lessons == ["LESSON_X"]
    assert progress.completion_percentage == 0


async def test_percentage_tracks_current_lessons(db, course):
    await enroll_user(db, USER_ID, COURSE_ID)
    await update_lesson_progress(db, USER_ID, COURSE_ID, LESSON_IDS[0])
    await db[LESSONS].delete_one({"_id": LESSON_IDS[3]})

    progress = await update_lesson_progress(db, USER_ID, COURSE_ID, LESSON_IDS[1])
    assert progress.completion_percentage == 67


async def test_interleaved_updates_settle_on_latest_lessons(db, course, monkeypatch):
    await enroll_user(db, USER_ID, COURSE_ID)

    # The first update stalls between its write and its lesson lookup
    real_lessons = progress_service.list_course_lessons
    calls = []

    async def slow_first_lookup(*args):
        calls.append(args)
        if len(calls) == 1:
            await asyncio.sleep(0.05)
        return await real_lessons(*args)

    monkeypatch.setattr(progress_service, "list_course_lessons", slow_first_lookup)

    await asyncio.gather(
        update_lesson_progress(db, USER_ID, COURSE_ID, LESSON_IDS[0]),
        update_lesson_progress(db, USER_ID, COURSE_ID, LESSON_IDS[1]),
    )

    stored = await db[PROGRESS].find_one({"user_id": USER_ID, "course_id": COURSE_ID})
    assert sorted(stored["completed_lessons"]) == LESSON_IDS[:2]
    assert stored["completion_percentage"] == 50


async def test_finishing_without_enrollment_still_issues_certificate(client, db, course):
    for lesson_id in LESSON_IDS:
        resp = await client.post("/functions/updateProgress", json=progress_body(lesson_id))

    assert resp.status_code == 200
    assert resp.json()["completionPercentage"] == 100
    assert await db[ENROLLMENTS].count_documents({}) == 0
    assert await db[CERTIFICATES].count_documents({"user_id": USER_ID, "course_id": COURSE_ID}) == 1


async def test_failed_enrollment_completion_keeps_progress(client, db, course, monkeypatch):
    await enroll_user(db, USER_ID, COURSE_ID)

    async def broken_completion(*args):
        raise RuntimeError("enrollments unavailable")

    monkeypatch.setattr(progress_service, "mark_enrollment_completed", broken_completion)

    for lesson_id in LESSON_IDS:
        resp = await client.post("/functions/updateProgress", json=progress_body(lesson_id))

    assert resp.status_code == 200
    assert resp.json()["completionPercentage"] == 100
    stored = await db[PROGRESS].find_one({"user_id": USER_ID, "course_id": COURSE_ID})
    assert stored["completion_percentage"] == 100
    assert (await db[ENROLLMENTS].find_one({"user_id": USER_ID}))["status"] == "active"
    assert await db[CERTIFICATES].count_documents({"user_id": USER_ID}) == 1
