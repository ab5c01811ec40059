"""
Course authoring: courses, their lessons and the per-course quiz.
File: coursehub/courses/course_service.py

Ratings, student and review counts on a course are maintained by the
review and enrollment flows and are never written from here.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from coursehub.core.errors import NotFoundError
from coursehub.courses.database import (
    COURSES, LESSONS, QUIZZES, count_documents, create_document, delete_document,
    delete_documents, find_document, get_course, get_document, list_course_lessons,
    list_documents, new_id, update_document
)
from coursehub.courses.models import (
    Course, CourseCreate, CourseUpdate, Lesson, LessonCreate, LessonUpdate, Quiz,
    QuizSave
)

logger = logging.getLogger(__name__)


def changed_fields(updates) -> Dict:
    return {k: v for k, v in updates.model_dump().items() if v is not None}

# ==================== COURSES ====================

async def list_courses(
    db: AsyncIOMotorDatabase,
    category: Optional[str] = None,
    level: Optional[str] = None,
    instructor_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 20,
) -> List[Course]:
    filters = {}
    if category:
        filters["category"] = category
    if level:
        filters["level"] = level
    if instructor_id:
        filters["instructor_id"] = instructor_id

    docs = await list_documents(db, COURSES, filters, skip=skip, limit=limit, sort=[("title", 1)])
    return [Course.from_document(doc) for doc in docs]


async def require_course(db: AsyncIOMotorDatabase, course_id: str) -> Course:
    course = await get_course(db, course_id)
    if course is None:
        raise NotFoundError("Course not found")
    return course


async def create_course(db: AsyncIOMotorDatabase, data: CourseCreate) -> Course:
    doc = data.model_dump()
    doc.update({
        "_id": new_id(COURSES),
        "instructor_name": data.instructor_name or "Unknown",
        "rating": 0.0,
        "students": 0,
        "review_count": 0,
        "created_at": datetime.utcnow(),
    })
    await create_document(db, COURSES, doc)
    logger.info("Course %s created: %s", doc["_id"], data.title)
    return Course.from_document(doc)


async def update_course(db: AsyncIOMotorDatabase, course_id: str, updates: CourseUpdate) -> Course:
    fields = changed_fields(updates)
    if not fields:
        return await require_course(db, course_id)

    doc = await update_document(db, COURSES, course_id, fields)
    if doc is None:
        raise NotFoundError("Course not found")
    return Course.from_document(doc)


async def delete_course(db: AsyncIOMotorDatabase, course_id: str) -> Course:
    """Remove a course together with its lessons and quizzes"""
    course = await require_course(db, course_id)

    await delete_document(db, COURSES, course_id)
    lessons = await delete_documents(db, LESSONS, {"course_id": course_id})
    quizzes = await delete_documents(db, QUIZZES, {"course_id": course_id})
    logger.info("Course %s deleted with %d lessons and %d quizzes", course_id, lessons, quizzes)
    return course

# ==================== LESSONS ====================

async def create_lesson(db: AsyncIOMotorDatabase, course_id: str, data: LessonCreate) -> Lesson:
    await require_course(db, course_id)

    order = data.order
    if order is None:
        order = await count_documents(db, LESSONS, {"course_id": course_id}) + 1

    lesson = Lesson(id=new_id(LESSONS), course_id=course_id, **data.model_dump(exclude={"order"}), order=order)
    await create_document(db, LESSONS, lesson.to_document())
    return lesson


async def get_lessons(db: AsyncIOMotorDatabase, course_id: str) -> List[Lesson]:
    return await list_course_lessons(db, course_id)


async def update_lesson(db: AsyncIOMotorDatabase, lesson_id: str, updates: LessonUpdate) -> Lesson:
    fields = changed_fields(updates)
    doc = await update_document(db, LESSONS, lesson_id, fields) if fields else await get_document(db, LESSONS, lesson_id)
    if doc is None:
        raise NotFoundError("Lesson not found")
    return Lesson.from_document(doc)


async def delete_lesson(db: AsyncIOMotorDatabase, lesson_id: str):
    if not await delete_document(db, LESSONS, lesson_id):
        raise NotFoundError("Lesson not found")

# ==================== QUIZ ====================

async def get_course_quiz(db: AsyncIOMotorDatabase, course_id: str) -> Quiz:
    quiz = Quiz.from_document(await find_document(db, QUIZZES, course_id=course_id))
    if quiz is None:
        raise NotFoundError("Quiz not found")
    return quiz


async def save_course_quiz(db: AsyncIOMotorDatabase, course_id: str, data: QuizSave) -> Quiz:
    """Create the course's quiz, or replace the questions of the one it has"""
    course = await require_course(db, course_id)

    fields = {
        "course_id": course_id,
        "title": data.title or f"{course.title} Quiz",
        "questions": [
            {"question": q.question, "options": q.options, "correctAnswer": q.correct_answer}
            for q in data.questions
        ],
        "correct_answers": [q.correct_answer for q in data.questions],
    }

    existing = await find_document(db, QUIZZES, course_id=course_id)
    if existing:
        doc = await update_document(db, QUIZZES, existing["_id"], fields)
    else:
        doc = await create_document(db, QUIZZES, {"_id": new_id(QUIZZES), **fields})
    logger.info("Quiz %s saved for %s with %d questions", doc["_id"], course_id, len(data.questions))
    return Quiz.from_document(doc)
