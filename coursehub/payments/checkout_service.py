"""
Course purchase: checkout session creation and payment verification.
File: coursehub/payments/checkout_service.py

verify_payment is idempotent: a second verification of a paid session
finds the enrollment created by the first and writes nothing.

Thumbnails (the request's courseThumbnail and the course's own) are not
sent to the gateway: Razorpay Payment Links have no image field.
"""

import logging
from decimal import Decimal
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from coursehub.core import config
from coursehub.core.errors import DataIntegrityError, ValidationError
from coursehub.core.followups import run_followup
from coursehub.core.rounding import round_half_up
from coursehub.courses.database import get_course
from coursehub.courses.enrollment_service import enroll_user
from coursehub.courses.models import CheckoutSessionCreate, Enrollment
from coursehub.courses.notification_service import notify_payment_success
from coursehub.payments.gateway import CheckoutSession, RazorpayCheckoutGateway

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "Online course purchase"


class PaymentVerification(BaseModel):
    verified: bool
    already_enrolled: bool = False
    enrollment: Optional[Enrollment] = None


def to_minor_units(price: float) -> int:
    """Dollars to cents, halves rounded up (19.99 -> 1999)"""
    try:
        return int(round_half_up(Decimal(str(price)) * 100))
    except ValueError:
        raise ValidationError("Price must be a positive number", error=f"unusable price {price!r}")


def from_minor_units(amount: Optional[int]) -> Optional[float]:
    if amount is None:
        return None
    return float(round_half_up(Decimal(amount) / 100, 2))


def success_url(course_id: str) -> str:
    return f"{config.FRONTEND_URL}/payment-success?course_id={course_id}"

# ==================== CHECKOUT ====================

async def create_checkout_session(
    db: AsyncIOMotorDatabase,
    gateway: RazorpayCheckoutGateway,
    data: CheckoutSessionCreate,
) -> CheckoutSession:
    amount = to_minor_units(data.price)

    # Enrichment only; the caller's data is enough to sell the course
    course = None
    try:
        course = await get_course(db, data.course_id)
    except Exception as e:
        logger.warning("Could not verify course %s in store: %s", data.course_id, e)

    description = data.course_description or (course.description if course else None) or DEFAULT_DESCRIPTION
    thumbnail = data.course_thumbnail or (course.thumbnail if course else None)
    if thumbnail:
        logger.debug("Thumbnail for %s not sent, payment links carry no image", data.course_id)

    metadata = {
        "courseId": data.course_id,
        "userId": data.user_id,
        "courseTitle": data.course_title,
    }

    session = await gateway.create_session(
        amount=amount,
        currency=config.CHECKOUT_CURRENCY,
        title=data.course_title,
        description=description,
        metadata=metadata,
        callback_url=success_url(data.course_id),
    )
    logger.info("Checkout session %s created for %s buying %s", session.session_id, data.user_id, data.course_id)
    return session

# ==================== VERIFICATION ====================

async def verify_payment(
    db: AsyncIOMotorDatabase,
    gateway: RazorpayCheckoutGateway,
    session_id: str,
) -> PaymentVerification:
    session = await gateway.retrieve_session(session_id)

    if not session.is_paid:
        logger.info("Session %s not paid yet (%s)", session_id, session.payment_status)
        return PaymentVerification(verified=False)

    course_id = session.metadata.get("courseId")
    user_id = session.metadata.get("userId")
    if not course_id or not user_id:
        raise DataIntegrityError(
            "Checkout session is missing course or user metadata",
            error=f"session {session_id}",
        )

    amount = from_minor_units(session.amount_total)
    enrollment, created = await enroll_user(
        db, user_id, course_id,
        payment_id=session.payment_intent_id,
        amount=amount,
    )

    if created:
        await run_followup("notify payment success", notify_payment_success,
                           db, user_id, course_id, amount, idempotent=False)
    else:
        logger.info("Session %s: %s already enrolled in %s", session_id, user_id, course_id)

    return PaymentVerification(verified=True, already_enrolled=not created, enrollment=enrollment)
