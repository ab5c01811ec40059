from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from coursehub.core.errors import DataIntegrityError
from coursehub.courses.course_service import (
    create_course, create_lesson, delete_course, delete_lesson, get_course_quiz,
    get_lessons, list_courses, require_course, save_course_quiz, update_course,
    update_lesson
)
from coursehub.courses.dependencies import get_db
from coursehub.courses.functions_router import parse_request, read_body
from coursehub.courses.models import CourseCreate, CourseUpdate, LessonCreate, LessonUpdate, Quiz, QuizSave

router = APIRouter(tags=["Course Management"])


def learner_quiz(quiz: Quiz) -> dict:
    """The quiz as learners see it, answer key removed"""
    try:
        questions = quiz.parsed_questions()
    except ValueError as e:
        raise DataIntegrityError("Invalid quiz format", error=str(e))

    body = quiz.to_response()
    body.pop("correctAnswers", None)
    body["questions"] = [
        {k: v for k, v in q.items() if k != "correctAnswer"} if isinstance(q, dict) else q
        for q in questions
    ]
    return body

# ==================== COURSE CRUD ====================

@router.get("")
async def list_courses_endpoint(
    category: Optional[str] = None,
    level: Optional[str] = None,
    instructor_id: Optional[str] = Query(None, alias="instructorId"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """List courses with optional filters"""
    courses = await list_courses(db, category=category, level=level, instructor_id=instructor_id,
                                 skip=skip, limit=limit)
    return {
        "success": True,
        "courses": [c.to_response() for c in courses],
        "count": len(courses),
        "skip": skip,
        "limit": limit,
    }


@router.post("", status_code=201)
async def create_course_endpoint(request: Request, db: AsyncIOMotorDatabase = Depends(get_db)):
    data = parse_request(CourseCreate, await read_body(request))
    course = await create_course(db, data)
    return {"success": True, "course": course.to_response(), "message": "Course created successfully"}


@router.get("/{course_id}")
async def get_course_endpoint(course_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    course = await require_course(db, course_id)
    return {"success": True, "course": course.to_response()}


@router.put("/{course_id}")
async def update_course_endpoint(course_id: str, request: Request, db: AsyncIOMotorDatabase = Depends(get_db)):
    updates = parse_request(CourseUpdate, await read_body(request))
    course = await update_course(db, course_id, updates)
    return {"success": True, "course": course.to_response(), "message": "Course updated"}


@router.delete("/{course_id}")
async def delete_course_endpoint(course_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    await delete_course(db, course_id)
    return {"success": True, "message": "Course deleted"}

# ==================== LESSONS ====================

@router.get("/{course_id}/lessons")
async def list_lessons_endpoint(course_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    lessons = await get_lessons(db, course_id)
    return {"success": True, "lessons": [lesson.to_response() for lesson in lessons], "count": len(lessons)}


@router.post("/{course_id}/lessons", status_code=201)
async def create_lesson_endpoint(course_id: str, request: Request, db: AsyncIOMotorDatabase = Depends(get_db)):
    data = parse_request(LessonCreate, await read_body(request))
    lesson = await create_lesson(db, course_id, data)
    return {"success": True, "lesson": lesson.to_response()}


@router.put("/lessons/{lesson_id}")
async def update_lesson_endpoint(lesson_id: str, request: Request, db: AsyncIOMotorDatabase = Depends(get_db)):
    updates = parse_request(LessonUpdate, await read_body(request))
    lesson = await update_lesson(db, lesson_id, updates)
    return {"success": True, "lesson": lesson.to_response()}


@router.delete("/lessons/{lesson_id}")
async def delete_lesson_endpoint(lesson_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    await delete_lesson(db, lesson_id)
    return {"success": True, "message": "Lesson deleted"}

# ==================== QUIZ ====================

@router.get("/{course_id}/quiz")
async def get_quiz_endpoint(course_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    quiz = await get_course_quiz(db, course_id)
    return {"success": True, "quiz": learner_quiz(quiz)}


@router.put("/{course_id}/quiz")
async def save_quiz_endpoint(course_id: str, request: Request, db: AsyncIOMotorDatabase = Depends(get_db)):
    data = parse_request(QuizSave, await read_body(request))
    quiz = await save_course_quiz(db, course_id, data)
    return {"success": True, "quiz": quiz.to_response(), "message": "Quiz saved"}
