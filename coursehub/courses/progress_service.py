import logging
from datetime import datetime
from typing import Iterable, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from coursehub.core.errors import StoreError, ValidationError
from coursehub.core.followups import run_followup
from coursehub.courses.certificate_service import issue_certificate
from coursehub.courses.database import (
    ENROLLMENTS, PROGRESS, find_enrollment, get_document, list_course_lessons,
    modify_document
)
from coursehub.courses.enrollment_service import ensure_progress
from coursehub.courses.models import EnrollmentStatus, Progress, ProgressAction

logger = logging.getLogger(__name__)

MAX_RECOMPUTE_ATTEMPTS = 5

VALID_ACTIONS = ", ".join(a.value for a in ProgressAction)


def percent(part: int, whole: int) -> int:
    """Whole-number percentage, halves rounded up; 0 when ``whole`` is 0"""
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


def calculate_completion(completed_lessons: Iterable[str], lesson_ids: Iterable[str]) -> int:
    """Share of the course's lessons that are completed; unknown ids do not count"""
    course_lessons = set(lesson_ids)
    done = course_lessons.intersection(completed_lessons)
    return percent(len(done), len(course_lessons))


def parse_action(action: Optional[str]) -> ProgressAction:
    if action is None:
        return ProgressAction.COMPLETE
    try:
        return ProgressAction(action)
    except ValueError:
        raise ValidationError(f"Invalid action '{action}'. Expected one of: {VALID_ACTIONS}")

# ==================== COMPLETION ====================

async def mark_enrollment_completed(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> bool:
    enrollment = await find_enrollment(db, user_id, course_id)
    if enrollment is None:
        logger.info("No enrollment for %s in %s, completion not recorded", user_id, course_id)
        return False
    if enrollment.status == EnrollmentStatus.COMPLETED:
        return True

    await modify_document(db, ENROLLMENTS, enrollment.id, {
        "$set": {"status": EnrollmentStatus.COMPLETED.value, "completed_at": datetime.utcnow()}
    })
    logger.info("Enrollment %s completed", enrollment.id)
    return True


async def complete_course(db: AsyncIOMotorDatabase, user_id: str, course_id: str):
    await run_followup("mark enrollment completed", mark_enrollment_completed, db, user_id, course_id)
    await run_followup("issue certificate", issue_certificate, db, user_id, course_id)

# ==================== LESSON PROGRESS ====================

async def update_lesson_progress(
    db: AsyncIOMotorDatabase,
    user_id: str,
    course_id: str,
    lesson_id: str,
    action: Optional[str] = None,
) -> Progress:
    """
    Mark a lesson complete or uncomplete and recompute the completion
    percentage from the course's current lessons.
    """
    parsed = parse_action(action)
    progress = await ensure_progress(db, user_id, course_id)

    if parsed is ProgressAction.COMPLETE:
        change = {"$addToSet": {"completed_lessons": lesson_id}}
    else:
        change = {"$pull": {"completed_lessons": lesson_id}}

    doc = await modify_document(db, PROGRESS, progress.id, change)

    # The percentage is written only against the lesson list it was computed
    # from; a concurrent change in between forces a recompute.
    for _ in range(MAX_RECOMPUTE_ATTEMPTS):
        if doc is None:
            raise StoreError("Progress record disappeared during update")
        completed = doc.get("completed_lessons", [])
        lessons = await list_course_lessons(db, course_id)
        percentage = calculate_completion(completed, [lesson.id for lesson in lessons])

        written = await modify_document(
            db, PROGRESS, progress.id,
            {"$set": {"completion_percentage": percentage, "last_accessed": datetime.utcnow()}},
            match={"completed_lessons": completed},
        )
        if written is not None:
            break
        logger.info("Lessons for %s in %s changed during update, recomputing", user_id, course_id)
        doc = await get_document(db, PROGRESS, progress.id)
    else:
        raise StoreError("Progress kept changing, completion percentage not recorded")
    updated = Progress.from_document(written)

    if percentage == 100:
        logger.info("Course %s completed by %s", course_id, user_id)
        await complete_course(db, user_id, course_id)

    return updated
