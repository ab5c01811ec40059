"""
Enrollment + progress initialisation.
File: coursehub/courses/enrollment_service.py

Shared by the direct enrollment handler and the payment verifier.
Uniqueness per (user, course) comes from the deterministic enrollment id
and the unique index, so concurrent enrollments collapse to one document.
"""

import logging
from datetime import datetime
from typing import Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from coursehub.core.errors import ConflictError, StoreError
from coursehub.core.followups import run_followup
from coursehub.courses.database import (
    COURSES, ENROLLMENTS, PROGRESS, create_document, find_enrollment,
    find_progress, increment_field, pair_id
)
from coursehub.courses.models import Enrollment, EnrollmentStatus, Progress
from coursehub.courses.notification_service import notify_enrollment

logger = logging.getLogger(__name__)

# ==================== PROGRESS BOOTSTRAP ====================

async def ensure_progress(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> Progress:
    """Load the progress record for the pair, creating an empty one if needed"""
    progress = await find_progress(db, user_id, course_id)
    if progress:
        return progress

    progress = Progress(
        id=pair_id(PROGRESS, user_id, course_id),
        user_id=user_id,
        course_id=course_id,
        completed_lessons=[],
        completion_percentage=0,
        quiz_scores=[],
        last_accessed=datetime.utcnow(),
    )
    try:
        await create_document(db, PROGRESS, progress.to_document())
    except DuplicateKeyError:
        # Lost the race to another request for the same pair
        progress = await find_progress(db, user_id, course_id)
        if progress is None:
            raise StoreError("Progress record collided but could not be loaded")
    return progress

# ==================== ENROLLMENT ====================

async def increment_students(db: AsyncIOMotorDatabase, course_id: str) -> bool:
    matched = await increment_field(db, COURSES, course_id, "students", 1)
    if not matched:
        logger.warning("Course %s not found, student count not updated", course_id)
    return matched


async def enroll_user(
    db: AsyncIOMotorDatabase,
    user_id: str,
    course_id: str,
    payment_id: Optional[str] = None,
    amount: Optional[float] = None,
) -> Tuple[Enrollment, bool]:
    """
    Enroll a user in a course.

    Returns ``(enrollment, created)``. When the pair is already enrolled
    the existing enrollment is returned with ``created=False`` and nothing
    is written.
    """
    existing = await find_enrollment(db, user_id, course_id)
    if existing:
        return existing, False

    enrollment = Enrollment(
        id=pair_id(ENROLLMENTS, user_id, course_id),
        user_id=user_id,
        course_id=course_id,
        enrolled_at=datetime.utcnow(),
        status=EnrollmentStatus.ACTIVE,
        payment_id=payment_id,
        amount=amount,
    )
    doc = enrollment.to_document()
    if payment_id is None:
        doc.pop("payment_id")
    if amount is None:
        doc.pop("amount")
    doc.pop("completed_at")

    try:
        await create_document(db, ENROLLMENTS, doc)
    except DuplicateKeyError:
        existing = await find_enrollment(db, user_id, course_id)
        if existing is None:
            raise StoreError("Enrollment collided but could not be loaded")
        logger.info("Concurrent enrollment detected for %s in %s", user_id, course_id)
        return existing, False

    logger.info("Enrollment %s created for %s in %s", enrollment.id, user_id, course_id)

    await ensure_progress(db, user_id, course_id)

    await run_followup("increment student count", increment_students, db, course_id, idempotent=False)
    await run_followup("notify enrollment", notify_enrollment, db, user_id, course_id, idempotent=False)

    return enrollment, True


async def enroll_course(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> Enrollment:
    """Direct (unpaid) enrollment; a second enrollment is a conflict"""
    enrollment, created = await enroll_user(db, user_id, course_id)
    if not created:
        raise ConflictError("Already enrolled in this course")
    return enrollment
