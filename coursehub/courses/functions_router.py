"""
Learning pipeline handlers
File: coursehub/courses/functions_router.py

Each handler takes a JSON body (an object, or a JSON string holding one)
and answers with ``{"success": ...}`` plus an HTTP status.

POST /functions/createCheckoutSession
POST /functions/verifyPayment
POST /functions/enrollCourse
POST /functions/updateProgress
POST /functions/submitQuiz
"""

import json
import logging
from typing import Type, TypeVar

from fastapi import APIRouter, Depends, Request
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError as PydanticValidationError

from coursehub.core.errors import CourseHubError, StoreError, ValidationError
from coursehub.courses.dependencies import get_db, get_gateway
from coursehub.courses.enrollment_service import enroll_course
from coursehub.courses.models import (
    CheckoutSessionCreate, EnrollmentCreate, MAX_PRICE, PaymentVerify,
    ProgressUpdate, QuizSubmission, RequestBody
)
from coursehub.courses.progress_service import update_lesson_progress
from coursehub.courses.quiz_service import FAILED_MESSAGE, PASSED_MESSAGE, grade_quiz
from coursehub.payments.checkout_service import create_checkout_session, verify_payment
from coursehub.payments.gateway import RazorpayCheckoutGateway

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Functions"])

RequestT = TypeVar("RequestT", bound=RequestBody)

# Error types that mean "the caller left the field out"
MISSING_ERROR_TYPES = {"missing", "string_too_short"}

FIELD_MESSAGES = {
    ("price", "less_than_equal"): f"Price must not exceed {MAX_PRICE:,}",
    "price": "Price must be a positive number",
    "answers": "Answers must be an array",
}

# ==================== REQUEST PARSING ====================

async def read_body(request: Request) -> dict:
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        body = json.loads(raw)
        # Some clients double-encode: the body is a JSON string of the object
        if isinstance(body, str):
            body = json.loads(body)
    except ValueError as e:
        raise ValidationError("Invalid JSON body", error=str(e))

    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def parse_request(model: Type[RequestT], body: dict) -> RequestT:
    try:
        return model.model_validate(body)
    except PydanticValidationError as e:
        missing, invalid = [], []
        for err in e.errors():
            field = str(err["loc"][0]) if err["loc"] else "body"
            if err["type"] in MISSING_ERROR_TYPES or err.get("input") is None:
                missing.append(field)
            else:
                invalid.append((field, err["type"], err["msg"]))

        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        field, error_type, msg = invalid[0]
        message = FIELD_MESSAGES.get((field, error_type)) or FIELD_MESSAGES.get(field, f"Invalid value for {field}: {msg}")
        raise ValidationError(message)

# ==================== CHECKOUT ====================

@router.post("/createCheckoutSession")
async def create_checkout_session_endpoint(
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_db),
    gateway: RazorpayCheckoutGateway = Depends(get_gateway),
):
    data = parse_request(CheckoutSessionCreate, await read_body(request))
    try:
        session = await create_checkout_session(db, gateway, data)
    except CourseHubError:
        raise
    except Exception as e:
        logger.exception("Checkout session creation failed")
        raise StoreError("Failed to create checkout session", error=str(e))

    return {
        "success": True,
        "sessionId": session.session_id,
        "url": session.url,
        "message": "Checkout session created successfully",
    }


@router.post("/verifyPayment")
async def verify_payment_endpoint(
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_db),
    gateway: RazorpayCheckoutGateway = Depends(get_gateway),
):
    data = parse_request(PaymentVerify, await read_body(request))
    try:
        result = await verify_payment(db, gateway, data.session_id)
    except CourseHubError:
        raise
    except Exception as e:
        logger.exception("Payment verification failed")
        raise StoreError("Failed to verify payment", error=str(e))

    if not result.verified:
        return {"success": True, "verified": False, "message": "Payment not completed"}

    response = {
        "success": True,
        "verified": True,
        "enrollment": result.enrollment.to_response(),
        "message": "Payment verified successfully",
    }
    if result.already_enrolled:
        response["alreadyEnrolled"] = True
        response["message"] = "Already enrolled"
    return response

# ==================== ENROLLMENT ====================

@router.post("/enrollCourse", status_code=201)
async def enroll_course_endpoint(
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    data = parse_request(EnrollmentCreate, await read_body(request))
    try:
        enrollment = await enroll_course(db, data.user_id, data.course_id)
    except CourseHubError:
        raise
    except Exception as e:
        logger.exception("Enrollment failed")
        raise StoreError("Failed to enroll in course", error=str(e))

    return {
        "success": True,
        "enrollment": enrollment.to_response(),
        "message": "Successfully enrolled in course",
    }

# ==================== PROGRESS ====================

@router.post("/updateProgress")
async def update_progress_endpoint(
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    data = parse_request(ProgressUpdate, await read_body(request))
    try:
        progress = await update_lesson_progress(db, data.user_id, data.course_id, data.lesson_id, data.action)
    except CourseHubError:
        raise
    except Exception as e:
        logger.exception("Progress update failed")
        raise StoreError("Failed to update progress", error=str(e))

    return {
        "success": True,
        "progress": progress.to_response(),
        "completionPercentage": progress.completion_percentage,
        "message": "Progress updated successfully",
    }

# ==================== QUIZZES ====================

@router.post("/submitQuiz")
async def submit_quiz_endpoint(
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    data = parse_request(QuizSubmission, await read_body(request))
    try:
        result = await grade_quiz(db, data.user_id, data.course_id, data.quiz_id, data.answers)
    except CourseHubError:
        raise
    except Exception as e:
        logger.exception("Quiz submission failed")
        raise StoreError("Failed to submit quiz", error=str(e))

    return {
        "success": True,
        "resultId": result.id,
        "score": result.score,
        "passed": result.passed,
        "correctCount": result.correct_count,
        "totalQuestions": result.total_questions,
        "results": [r.model_dump(by_alias=True, mode="json") for r in result.results],
        "message": PASSED_MESSAGE if result.passed else FAILED_MESSAGE,
    }
