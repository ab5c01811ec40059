from datetime import datetime
from typing import Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from coursehub.core.errors import ConflictError, NotFoundError
from coursehub.core.followups import run_followup
from coursehub.core.rounding import round_half_up
from coursehub.courses.database import (
    COURSES, REVIEWS, create_document, delete_document, find_document, get_document,
    get_user, increment_field, list_documents, new_id, update_document
)
from coursehub.courses.models import Review, ReviewCreate, ReviewUpdate


def rating_stats(reviews: List[Review]) -> Dict:
    distribution = {str(star): 0 for star in range(1, 6)}
    for review in reviews:
        distribution[str(review.rating)] = distribution.get(str(review.rating), 0) + 1

    average = sum(r.rating for r in reviews) / len(reviews) if reviews else 0.0
    return {
        "average": float(round_half_up(average, 1)),
        "total": len(reviews),
        "distribution": distribution,
    }


async def get_course_reviews(db: AsyncIOMotorDatabase, course_id: str, limit: int = 10, skip: int = 0) -> List[Review]:
    docs = await list_documents(db, REVIEWS, {"course_id": course_id}, skip=skip, limit=limit, sort=[("created_at", -1)])
    return [Review.from_document(doc) for doc in docs]


async def get_course_rating_stats(db: AsyncIOMotorDatabase, course_id: str) -> Dict:
    docs = await list_documents(db, REVIEWS, {"course_id": course_id})
    return rating_stats([Review.from_document(doc) for doc in docs])


async def update_course_rating(db: AsyncIOMotorDatabase, course_id: str):
    """Recompute the course's denormalized rating from all of its reviews"""
    stats = await get_course_rating_stats(db, course_id)
    await update_document(db, COURSES, course_id, {
        "rating": stats["average"],
        "review_count": stats["total"],
    })


async def create_review(db: AsyncIOMotorDatabase, data: ReviewCreate) -> Review:
    user_name = data.user_name
    if not user_name:
        user = await get_user(db, data.user_id) or {}
        user_name = user.get("name") or "Student"

    review = Review(
        id=new_id(REVIEWS),
        user_id=data.user_id,
        course_id=data.course_id,
        user_name=user_name,
        rating=data.rating,
        comment=data.comment,
        created_at=datetime.utcnow(),
        helpful=0,
    )
    try:
        await create_document(db, REVIEWS, review.to_document())
    except DuplicateKeyError:
        raise ConflictError("You have already reviewed this course")

    await run_followup("update course rating", update_course_rating, db, data.course_id)
    return review


async def get_user_review(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> Optional[Review]:
    return Review.from_document(await find_document(db, REVIEWS, user_id=user_id, course_id=course_id))


async def update_review(db: AsyncIOMotorDatabase, review_id: str, data: ReviewUpdate) -> Review:
    doc = await update_document(db, REVIEWS, review_id, {"rating": data.rating, "comment": data.comment})
    if doc is None:
        raise NotFoundError("Review not found")

    review = Review.from_document(doc)
    await run_followup("update course rating", update_course_rating, db, review.course_id)
    return review


async def mark_helpful(db: AsyncIOMotorDatabase, review_id: str) -> Review:
    if not await increment_field(db, REVIEWS, review_id, "helpful", 1):
        raise NotFoundError("Review not found")
    return Review.from_document(await get_document(db, REVIEWS, review_id))


async def delete_review(db: AsyncIOMotorDatabase, review_id: str) -> Optional[Review]:
    review = Review.from_document(await get_document(db, REVIEWS, review_id))
    if review is None:
        raise NotFoundError("Review not found")

    await delete_document(db, REVIEWS, review_id)
    await run_followup("update course rating", update_course_rating, db, review.course_id)
    return review
