from fastapi import APIRouter, Depends, Query, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from coursehub.core.errors import NotFoundError
from coursehub.courses.dependencies import get_db
from coursehub.courses.functions_router import parse_request, read_body
from coursehub.courses.models import ReviewCreate, ReviewUpdate
from coursehub.courses.review_service import (
    create_review, delete_review, get_course_rating_stats, get_course_reviews,
    get_user_review, mark_helpful, update_review
)

router = APIRouter(tags=["Reviews"])


@router.post("", status_code=201)
async def create_review_endpoint(request: Request, db: AsyncIOMotorDatabase = Depends(get_db)):
    data = parse_request(ReviewCreate, await read_body(request))
    review = await create_review(db, data)
    return {"success": True, "review": review.to_response()}


@router.get("/course/{course_id}")
async def list_course_reviews(
    course_id: str,
    limit: int = Query(10, ge=1, le=100),
    skip: int = Query(0, ge=0),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    reviews = await get_course_reviews(db, course_id, limit=limit, skip=skip)
    return {"success": True, "reviews": [r.to_response() for r in reviews], "count": len(reviews)}


@router.get("/course/{course_id}/stats")
async def course_rating_stats(course_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return {"success": True, **await get_course_rating_stats(db, course_id)}


@router.post("/{review_id}/helpful")
async def helpful_review(review_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    review = await mark_helpful(db, review_id)
    return {"success": True, "review": review.to_response()}


@router.delete("/{review_id}")
async def remove_review(review_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    await delete_review(db, review_id)
    return {"success": True, "message": "Review deleted"}


@router.get("/user/{user_id}/course/{course_id}")
async def user_course_review(user_id: str, course_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    review = await get_user_review(db, user_id, course_id)
    if review is None:
        raise NotFoundError("Review not found")
    return {"success": True, "review": review.to_response()}


@router.put("/{review_id}")
async def edit_review(review_id: str, request: Request, db: AsyncIOMotorDatabase = Depends(get_db)):
    data = parse_request(ReviewUpdate, await read_body(request))
    review = await update_review(db, review_id, data)
    return {"success": True, "review": review.to_response()}
