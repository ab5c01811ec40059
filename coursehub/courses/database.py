import hashlib
import logging
import uuid
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import (
    DuplicateKeyError,
    OperationFailure,
    PyMongoError,
    ServerSelectionTimeoutError,
    WriteConcernError,
)

from coursehub.core.errors import StoreError
from coursehub.courses.models import Course, Enrollment, Lesson, Progress, Quiz

logger = logging.getLogger(__name__)

# ==================== COLLECTIONS ====================

COURSES = "courses"
LESSONS = "lessons"
QUIZZES = "quizzes"
QUIZ_RESULTS = "quiz_results"
ENROLLMENTS = "enrollments"
PROGRESS = "progress"
CERTIFICATES = "certificates"
NOTIFICATIONS = "notifications"
REVIEWS = "reviews"
USERS = "users"

ID_PREFIXES = {
    COURSES: "COURSE",
    LESSONS: "LESSON",
    QUIZZES: "QUIZ",
    QUIZ_RESULTS: "QR",
    ENROLLMENTS: "ENR",
    PROGRESS: "PRG",
    CERTIFICATES: "CERT",
    NOTIFICATIONS: "NTF",
    REVIEWS: "REV",
    USERS: "USER",
}

# ==================== IDS ====================

def new_id(collection: str) -> str:
    prefix = ID_PREFIXES.get(collection, "DOC")
    return f"{prefix}_{uuid.uuid4().hex[:12].upper()}"

def pair_id(collection: str, user_id: str, course_id: str) -> str:
    """
    Deterministic id for per-(user, course) documents.
    Concurrent creates for the same pair collide on ``_id``.
    """
    digest = hashlib.sha256(f"{user_id}:{course_id}".encode()).hexdigest()[:20].upper()
    return f"{ID_PREFIXES.get(collection, 'DOC')}_{digest}"

# ==================== GENERIC DOCUMENT OPERATIONS ====================

async def _run(action: str, operation):
    try:
        return await operation
    except DuplicateKeyError:
        raise
    except WriteConcernError as e:
        raise StoreError(f"Store operation failed: {action}", error=str(e))
    except (ServerSelectionTimeoutError, OperationFailure) as e:
        # No server reached, or the server rejected the command outright
        raise StoreError(f"Store operation failed: {action}", error=str(e), not_applied=True)
    except PyMongoError as e:
        raise StoreError(f"Store operation failed: {action}", error=str(e))

async def create_document(db: AsyncIOMotorDatabase, collection: str, data: dict) -> dict:
    """Insert a document, assigning an id unless ``data`` carries ``_id``"""
    doc = dict(data)
    doc.setdefault("_id", new_id(collection))
    await _run(f"create {collection}", db[collection].insert_one(doc))
    return doc

async def get_document(db: AsyncIOMotorDatabase, collection: str, document_id: str) -> Optional[dict]:
    return await _run(f"get {collection}", db[collection].find_one({"_id": document_id}))

async def find_document(db: AsyncIOMotorDatabase, collection: str, **filters) -> Optional[dict]:
    return await _run(f"find {collection}", db[collection].find_one(filters))

async def list_documents(
    db: AsyncIOMotorDatabase,
    collection: str,
    filters: Optional[Dict[str, Any]] = None,
    skip: int = 0,
    limit: Optional[int] = None,
    sort: Optional[list] = None,
) -> List[dict]:
    cursor = db[collection].find(filters or {}, sort=sort, skip=skip, limit=limit or 0)
    return await _run(f"list {collection}", cursor.to_list(length=limit))

async def count_documents(db: AsyncIOMotorDatabase, collection: str, filters: Optional[dict] = None) -> int:
    return await _run(f"count {collection}", db[collection].count_documents(filters or {}))

async def modify_document(
    db: AsyncIOMotorDatabase,
    collection: str,
    document_id: str,
    operations: dict,
    match: Optional[dict] = None,
) -> Optional[dict]:
    """
    Apply raw update operators and return the document after the update.
    With ``match`` the update only applies while those fields still hold
    the given values; otherwise nothing is written and None is returned.
    """
    return await _run(
        f"update {collection}",
        db[collection].find_one_and_update(
            {**(match or {}), "_id": document_id},
            operations,
            return_document=ReturnDocument.AFTER,
        ),
    )

async def update_document(db: AsyncIOMotorDatabase, collection: str, document_id: str, updates: dict) -> Optional[dict]:
    return await modify_document(db, collection, document_id, {"$set": updates})

async def update_documents(db: AsyncIOMotorDatabase, collection: str, filters: dict, updates: dict) -> int:
    result = await _run(f"update {collection}", db[collection].update_many(filters, {"$set": updates}))
    return result.modified_count

async def delete_document(db: AsyncIOMotorDatabase, collection: str, document_id: str) -> bool:
    result = await _run(f"delete {collection}", db[collection].delete_one({"_id": document_id}))
    return result.deleted_count > 0

async def delete_documents(db: AsyncIOMotorDatabase, collection: str, filters: dict) -> int:
    result = await _run(f"delete {collection}", db[collection].delete_many(filters))
    return result.deleted_count

async def increment_field(db: AsyncIOMotorDatabase, collection: str, document_id: str, field: str, amount: int = 1) -> bool:
    """Atomic counter update, no read-modify-write"""
    result = await _run(
        f"increment {collection}.{field}",
        db[collection].update_one({"_id": document_id}, {"$inc": {field: amount}}),
    )
    return result.matched_count > 0

# ==================== TYPED LOOKUPS ====================

async def get_course(db: AsyncIOMotorDatabase, course_id: str) -> Optional[Course]:
    return Course.from_document(await get_document(db, COURSES, course_id))

async def get_quiz(db: AsyncIOMotorDatabase, quiz_id: str) -> Optional[Quiz]:
    return Quiz.from_document(await get_document(db, QUIZZES, quiz_id))

async def get_user(db: AsyncIOMotorDatabase, user_id: str) -> Optional[dict]:
    return await get_document(db, USERS, user_id)

async def list_course_lessons(db: AsyncIOMotorDatabase, course_id: str) -> List[Lesson]:
    docs = await list_documents(db, LESSONS, {"course_id": course_id}, sort=[("order", 1)])
    return [Lesson.from_document(doc) for doc in docs]

async def find_enrollment(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> Optional[Enrollment]:
    return Enrollment.from_document(await find_document(db, ENROLLMENTS, user_id=user_id, course_id=course_id))

async def find_progress(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> Optional[Progress]:
    return Progress.from_document(await find_document(db, PROGRESS, user_id=user_id, course_id=course_id))

# ==================== DATABASE INDEXES ====================

async def create_indexes(db: AsyncIOMotorDatabase):
    """Create MongoDB indexes, including the per-pair uniqueness guarantees"""
    await db[ENROLLMENTS].create_index([("user_id", 1), ("course_id", 1)], unique=True)
    await db[ENROLLMENTS].create_index("course_id")
    await db[PROGRESS].create_index([("user_id", 1), ("course_id", 1)], unique=True)
    await db[LESSONS].create_index([("course_id", 1), ("order", 1)])
    await db[QUIZ_RESULTS].create_index([("user_id", 1), ("quiz_id", 1)])
    await db[CERTIFICATES].create_index([("user_id", 1), ("course_id", 1)], unique=True)
    await db[CERTIFICATES].create_index("certificate_number", unique=True)
    await db[NOTIFICATIONS].create_index([("user_id", 1), ("read", 1)])
    await db[REVIEWS].create_index([("user_id", 1), ("course_id", 1)], unique=True)
    await db[REVIEWS].create_index("course_id")

    logger.info("Course store indexes created")
