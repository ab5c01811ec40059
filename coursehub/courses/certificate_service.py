"""
Certificate issuance.

One certificate per (user, course). Issuance is triggered by the progress
updater reaching 100 % and by a passing quiz on an already complete course;
both triggers may fire, so issuing is idempotent.
"""

import logging
import secrets
import string
import time
from datetime import datetime
from typing import List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from coursehub.core.followups import run_followup
from coursehub.courses.database import (
    CERTIFICATES, create_document, find_document, get_course, get_document,
    get_user, list_documents, pair_id
)
from coursehub.courses.models import Certificate
from coursehub.courses.notification_service import notify_certificate_issued, notify_course_completion

logger = logging.getLogger(__name__)

_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def generate_certificate_number() -> str:
    """CERT-<last 8 digits of epoch millis>-<4 random upper alnum>"""
    stamp = str(int(time.time() * 1000))[-8:]
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(4))
    return f"CERT-{stamp}-{suffix}"


async def find_certificate(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> Optional[Certificate]:
    return Certificate.from_document(await find_document(db, CERTIFICATES, user_id=user_id, course_id=course_id))


async def issue_certificate(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> Tuple[Certificate, bool]:
    """Return (certificate, created); an existing certificate is returned as-is"""
    existing = await find_certificate(db, user_id, course_id)
    if existing:
        return existing, False

    course = await get_course(db, course_id)
    user = await get_user(db, user_id) or {}

    certificate = Certificate(
        id=pair_id(CERTIFICATES, user_id, course_id),
        user_id=user_id,
        course_id=course_id,
        course_name=(course.title if course and course.title else "Course"),
        user_name=user.get("name") or "Student",
        instructor_name=(course.instructor_name if course and course.instructor_name else "Instructor"),
        completed_at=datetime.utcnow(),
        certificate_number=generate_certificate_number(),
    )

    try:
        await create_document(db, CERTIFICATES, certificate.to_document())
    except DuplicateKeyError:
        existing = await find_certificate(db, user_id, course_id)
        if existing is None:
            # certificate_number collision, the caller's retry draws a new one
            raise
        return existing, False

    logger.info("Certificate %s issued to %s for %s", certificate.certificate_number, user_id, course_id)

    await run_followup("notify certificate issued", notify_certificate_issued,
                       db, user_id, certificate.course_name, certificate.id, idempotent=False)
    await run_followup("notify course completion", notify_course_completion,
                       db, user_id, certificate.course_name, certificate.id, idempotent=False)

    return certificate, True


async def get_certificate(db: AsyncIOMotorDatabase, certificate_id: str) -> Optional[Certificate]:
    return Certificate.from_document(await get_document(db, CERTIFICATES, certificate_id))


async def get_user_certificates(db: AsyncIOMotorDatabase, user_id: str) -> List[Certificate]:
    docs = await list_documents(db, CERTIFICATES, {"user_id": user_id}, sort=[("completed_at", -1)])
    return [Certificate.from_document(doc) for doc in docs]


async def verify_certificate(db: AsyncIOMotorDatabase, certificate_number: str) -> Optional[Certificate]:
    return Certificate.from_document(await find_document(db, CERTIFICATES, certificate_number=certificate_number))
