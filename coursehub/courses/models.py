import json
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

# ==================== ENUMS ====================

class EnrollmentStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"

class ProgressAction(str, Enum):
    COMPLETE = "complete"
    UNCOMPLETE = "uncomplete"

class NotificationType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"

# ==================== BASE RECORD ====================

class Record(BaseModel):
    """
    A document from the store.

    Stored with snake_case keys and the id under ``_id``; rendered to
    clients with camelCase keys and the id under ``id``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore", use_enum_values=True)

    id: str

    @classmethod
    def from_document(cls, doc: Optional[dict]):
        if doc is None:
            return None
        data = dict(doc)
        if "_id" in data:
            data["id"] = str(data.pop("_id"))
        return cls.model_validate(data)

    def to_document(self) -> dict:
        data = self.model_dump(exclude={"id"})
        data["_id"] = self.id
        return data

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")

# ==================== COURSE CONTENT ====================

class Course(Record):
    title: str = ""
    description: str = ""
    category: Optional[str] = None
    level: Optional[str] = None
    duration: Optional[str] = None
    price: float = 0.0
    thumbnail: Optional[str] = None
    instructor_id: Optional[str] = None
    instructor_name: Optional[str] = None
    students: int = 0
    rating: float = 0.0
    review_count: int = 0

class Lesson(Record):
    course_id: str
    title: str = ""
    section: Optional[str] = None
    duration: Optional[str] = None
    video_url: Optional[str] = None
    order: int = 0

class Quiz(Record):
    course_id: Optional[str] = None
    title: Optional[str] = None
    # Either a list or its JSON text
    questions: Any = None
    correct_answers: Any = None

    @staticmethod
    def _parse_list(value, field: str) -> list:
        if isinstance(value, str):
            value = json.loads(value)
        if not isinstance(value, list):
            raise ValueError(f"quiz field '{field}' is not a list")
        return value

    def parsed_questions(self) -> list:
        return self._parse_list(self.questions, "questions")

    def parsed_answer_key(self) -> list:
        return self._parse_list(self.correct_answers, "correct_answers")

# ==================== LEARNER STATE ====================

class Enrollment(Record):
    user_id: str
    course_id: str
    enrolled_at: datetime
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    completed_at: Optional[datetime] = None
    payment_id: Optional[str] = None
    amount: Optional[float] = None

class Progress(Record):
    user_id: str
    course_id: str
    completed_lessons: List[str] = []
    completion_percentage: int = 0
    quiz_scores: List[str] = []
    last_accessed: Optional[datetime] = None

class QuestionResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    question_index: int
    user_answer: Any = None
    correct_answer: Any = None
    is_correct: bool

class QuizResult(Record):
    user_id: str
    course_id: str
    quiz_id: str
    score: int
    passed: bool
    correct_count: int
    total_questions: int
    results: List[QuestionResult] = []
    submitted_at: datetime

# ==================== SUPPORTING RECORDS ====================

class Certificate(Record):
    user_id: str
    course_id: str
    course_name: str
    user_name: str
    instructor_name: str
    completed_at: datetime
    certificate_number: str

class Notification(Record):
    user_id: str
    type: NotificationType = NotificationType.INFO
    title: str
    message: str
    read: bool = False
    created_at: datetime
    action_url: Optional[str] = None

class Review(Record):
    user_id: str
    course_id: str
    user_name: str = "Student"
    rating: int
    comment: str = ""
    created_at: datetime
    helpful: int = 0

# ==================== HANDLER REQUESTS ====================

# Upper bound for a course price in major currency units
MAX_PRICE = 1_000_000

class RequestBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

class CheckoutSessionCreate(RequestBody):
    course_id: str = Field(min_length=1)
    course_title: str = Field(min_length=1)
    price: float = Field(gt=0, le=MAX_PRICE, allow_inf_nan=False)
    user_id: str = Field(min_length=1)
    course_description: Optional[str] = None
    course_thumbnail: Optional[str] = None

class PaymentVerify(RequestBody):
    session_id: str = Field(min_length=1)

class EnrollmentCreate(RequestBody):
    user_id: str = Field(min_length=1)
    course_id: str = Field(min_length=1)

class ProgressUpdate(RequestBody):
    user_id: str = Field(min_length=1)
    course_id: str = Field(min_length=1)
    lesson_id: str = Field(min_length=1)
    action: Optional[str] = None

class QuizSubmission(RequestBody):
    user_id: str = Field(min_length=1)
    course_id: str = Field(min_length=1)
    quiz_id: str = Field(min_length=1)
    answers: List[Any]

class ReviewCreate(RequestBody):
    user_id: str = Field(min_length=1)
    course_id: str = Field(min_length=1)
    rating: int = Field(ge=1, le=5)
    comment: str = ""
    user_name: Optional[str] = None

class ReviewUpdate(RequestBody):
    rating: int = Field(ge=1, le=5)
    comment: str = ""

# ==================== AUTHORING REQUESTS ====================

class CourseCreate(RequestBody):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    price: float = Field(ge=0, le=MAX_PRICE, allow_inf_nan=False)
    category: Optional[str] = None
    level: Optional[str] = None
    duration: str = "0 hours"
    thumbnail: Optional[str] = None
    instructor_id: Optional[str] = None
    instructor_name: Optional[str] = None

class CourseUpdate(RequestBody):
    """Partial update; rating, students and review count are derived and not writable"""
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0, le=MAX_PRICE, allow_inf_nan=False)
    category: Optional[str] = None
    level: Optional[str] = None
    duration: Optional[str] = None
    thumbnail: Optional[str] = None
    instructor_name: Optional[str] = None

class LessonCreate(RequestBody):
    title: str = Field(min_length=1)
    video_url: str = Field(min_length=1)
    section: Optional[str] = None
    duration: str = "0:00"
    order: Optional[int] = Field(None, ge=0)

class LessonUpdate(RequestBody):
    title: Optional[str] = Field(None, min_length=1)
    video_url: Optional[str] = Field(None, min_length=1)
    section: Optional[str] = None
    duration: Optional[str] = None
    order: Optional[int] = Field(None, ge=0)

class QuizQuestionInput(RequestBody):
    question: str = Field(min_length=1)
    options: List[str] = Field(min_length=2)
    correct_answer: int = Field(ge=0)

    @model_validator(mode="after")
    def answer_within_options(self):
        if self.correct_answer >= len(self.options):
            raise ValueError(f"correctAnswer {self.correct_answer} has no matching option")
        return self

class QuizSave(RequestBody):
    title: Optional[str] = None
    questions: List[QuizQuestionInput] = Field(min_length=1)
