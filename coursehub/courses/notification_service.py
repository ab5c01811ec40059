"""
In-app notifications for learner events.
File: coursehub/courses/notification_service.py
"""

from datetime import datetime
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from coursehub.courses.database import (
    NOTIFICATIONS, count_documents, create_document, delete_document,
    get_course, list_documents, new_id, update_document, update_documents
)
from coursehub.courses.models import Notification, NotificationType

DEFAULT_COURSE_TITLE = "your course"

# ==================== CRUD ====================

async def create_notification(
    db: AsyncIOMotorDatabase,
    user_id: str,
    type: NotificationType,
    title: str,
    message: str,
    action_url: Optional[str] = None,
) -> Notification:
    notification = Notification(
        id=new_id(NOTIFICATIONS),
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        read=False,
        created_at=datetime.utcnow(),
        action_url=action_url,
    )
    await create_document(db, NOTIFICATIONS, notification.to_document())
    return notification

async def get_user_notifications(
    db: AsyncIOMotorDatabase,
    user_id: str,
    unread_only: bool = False,
    limit: int = 50,
    skip: int = 0,
) -> List[Notification]:
    filters = {"user_id": user_id}
    if unread_only:
        filters["read"] = False
    docs = await list_documents(db, NOTIFICATIONS, filters, skip=skip, limit=limit, sort=[("created_at", -1)])
    return [Notification.from_document(doc) for doc in docs]

async def get_unread_count(db: AsyncIOMotorDatabase, user_id: str) -> int:
    return await count_documents(db, NOTIFICATIONS, {"user_id": user_id, "read": False})

async def mark_as_read(db: AsyncIOMotorDatabase, notification_id: str) -> Optional[Notification]:
    return Notification.from_document(await update_document(db, NOTIFICATIONS, notification_id, {"read": True}))

async def mark_all_as_read(db: AsyncIOMotorDatabase, user_id: str) -> int:
    return await update_documents(db, NOTIFICATIONS, {"user_id": user_id, "read": False}, {"read": True})

async def delete_notification(db: AsyncIOMotorDatabase, notification_id: str) -> bool:
    return await delete_document(db, NOTIFICATIONS, notification_id)

# ==================== EVENT HELPERS ====================

async def _course_title(db: AsyncIOMotorDatabase, course_id: str) -> str:
    course = await get_course(db, course_id)
    return course.title if course and course.title else DEFAULT_COURSE_TITLE

async def notify_enrollment(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> Notification:
    title = await _course_title(db, course_id)
    return await create_notification(
        db, user_id, NotificationType.SUCCESS,
        "Course Enrollment Successful",
        f'You have successfully enrolled in "{title}". Start learning now!',
        action_url=f"/courses/{course_id}",
    )

async def notify_payment_success(db: AsyncIOMotorDatabase, user_id: str, course_id: str, amount: Optional[float]) -> Notification:
    title = await _course_title(db, course_id)
    amount_text = f" of ${amount:.2f}" if amount is not None else ""
    return await create_notification(
        db, user_id, NotificationType.SUCCESS,
        "Payment Successful",
        f'Your payment{amount_text} for "{title}" was successful. You can now access the course.',
    )

async def notify_quiz_result(db: AsyncIOMotorDatabase, user_id: str, course_id: str, score: int, passed: bool) -> Notification:
    title = await _course_title(db, course_id)
    if passed:
        return await create_notification(
            db, user_id, NotificationType.SUCCESS, "Quiz Passed!",
            f'You scored {score}% on the "{title}" quiz. Great job!',
        )
    return await create_notification(
        db, user_id, NotificationType.INFO, "Quiz Completed",
        f'You scored {score}% on the "{title}" quiz. Keep practicing!',
    )

async def notify_course_completion(db: AsyncIOMotorDatabase, user_id: str, course_title: str, certificate_id: str) -> Notification:
    return await create_notification(
        db, user_id, NotificationType.SUCCESS, "Course Completed!",
        f'Congratulations! You have completed "{course_title}". View your certificate.',
        action_url=f"/certificate/{certificate_id}",
    )

async def notify_certificate_issued(db: AsyncIOMotorDatabase, user_id: str, course_title: str, certificate_id: str) -> Notification:
    return await create_notification(
        db, user_id, NotificationType.SUCCESS, "Certificate Issued",
        f'Your certificate for "{course_title}" has been issued. Download it now!',
        action_url=f"/certificate/{certificate_id}",
    )
