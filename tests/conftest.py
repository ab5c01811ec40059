import httpx
import pytest
from mongomock_motor import AsyncMongoMockClient

from coursehub.core import config
from coursehub.core.errors import NotFoundError
from coursehub.courses.database import COURSES, LESSONS, QUIZZES, USERS, create_indexes
from coursehub.courses.dependencies import get_db, get_gateway
from coursehub.main import app
from coursehub.payments.gateway import CheckoutSession

COURSE_ID = "COURSE_PY101"
USER_ID = "USER_ALICE"
QUIZ_ID = "QUIZ_PY101_1"
LESSON_IDS = ["LESSON_1", "LESSON_2", "LESSON_3", "LESSON_4"]
ANSWER_KEY = [1, 0, 2, 1]


class FakeGateway:
    """Stands in for the Razorpay gateway; sessions live in a dict"""

    def __init__(self):
        self.sessions = {}
        self.created = []
        self.fail_with = None

    def add_session(self, session_id, payment_status="paid", metadata=None, amount_total=4999,
                    payment_intent_id="pay_123"):
        session = CheckoutSession(
            session_id=session_id,
            url=f"https://rzp.io/i/{session_id}",
            payment_status=payment_status,
            metadata=metadata if metadata is not None else {"courseId": COURSE_ID, "userId": USER_ID},
            amount_total=amount_total,
            payment_intent_id=payment_intent_id,
        )
        self.sessions[session_id] = session
        return session

    async def create_session(self, *, amount, currency, title, description, metadata, callback_url):
        if self.fail_with:
            raise self.fail_with
        self.created.append({
            "amount": amount,
            "currency": currency,
            "title": title,
            "description": description,
            "metadata": metadata,
            "callback_url": callback_url,
        })
        return self.add_session(f"plink_{len(self.created)}", payment_status="created",
                                metadata=metadata, amount_total=amount, payment_intent_id=None)

    async def retrieve_session(self, session_id):
        if session_id not in self.sessions:
            raise NotFoundError("Invalid session")
        return self.sessions[session_id]


@pytest.fixture(autouse=True)
def fast_followups(monkeypatch):
    monkeypatch.setattr(config, "FOLLOWUP_BACKOFF_SECONDS", 0)


@pytest.fixture
async def db():
    database = AsyncMongoMockClient()["coursehub_test"]
    await create_indexes(database)
    return database


@pytest.fixture
async def course(db):
    """A four-lesson course with one four-question quiz"""
    await db[COURSES].insert_one({
        "_id": COURSE_ID,
        "title": "Python 101",
        "description": "Learn Python from scratch",
        "price": 49.99,
        "instructor_name": "Dr. Grace",
        "students": 0,
        "rating": 0.0,
        "review_count": 0,
    })
    for order, lesson_id in enumerate(LESSON_IDS, start=1):
        await db[LESSONS].insert_one({
            "_id": lesson_id,
            "course_id": COURSE_ID,
            "title": f"Lesson {order}",
            "order": order,
        })
    await db[QUIZZES].insert_one({
        "_id": QUIZ_ID,
        "course_id": COURSE_ID,
        "title": "Basics",
        "questions": [{"question": f"Q{i}", "options": ["a", "b", "c"]} for i in range(4)],
        "correct_answers": list(ANSWER_KEY),
    })
    await db[USERS].insert_one({"_id": USER_ID, "name": "Alice"})
    return COURSE_ID


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
async def client(db, gateway):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_gateway] = lambda: gateway
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()
