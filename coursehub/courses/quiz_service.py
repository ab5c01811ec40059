"""
Quiz grading.
File: coursehub/courses/quiz_service.py

Scoring: exact per-index comparison against the stored answer key,
percentage rounded half up, pass at PASSING_SCORE (70) or above.
Every attempt is stored; passing also records the quiz on the learner's
progress.
"""

import logging
from datetime import datetime
from typing import Any, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from coursehub.core import config
from coursehub.core.errors import DataIntegrityError, NotFoundError, ValidationError
from coursehub.core.followups import run_followup
from coursehub.courses.certificate_service import issue_certificate
from coursehub.courses.database import (
    PROGRESS, QUIZ_RESULTS, create_document, find_progress, get_quiz,
    modify_document, new_id
)
from coursehub.courses.models import Progress, QuestionResult, QuizResult
from coursehub.courses.notification_service import notify_quiz_result
from coursehub.courses.progress_service import percent

logger = logging.getLogger(__name__)

PASSED_MESSAGE = "Congratulations! You passed the quiz."
FAILED_MESSAGE = "Keep practicing! Try again to improve your score."

# ==================== SCORING ====================

def normalize_answer(answer: Any, expected: Any) -> Any:
    """
    Coerce a submitted answer to the type of its key.
    Form posts often deliver "2" where the key stores 2.
    """
    if expected is None or type(answer) is type(expected):
        return answer
    if isinstance(answer, bool) or isinstance(expected, bool):
        return answer
    if isinstance(expected, int) and isinstance(answer, str):
        try:
            return int(answer.strip())
        except ValueError:
            return answer
    if isinstance(expected, float) and isinstance(answer, str):
        try:
            return float(answer.strip())
        except ValueError:
            return answer
    if isinstance(expected, str) and isinstance(answer, (int, float)):
        return str(answer)
    return answer


def score_answers(answers: List[Any], answer_key: List[Any]) -> Tuple[int, List[QuestionResult]]:
    """Return (correct_count, per-question results)"""
    correct_count = 0
    results = []
    for index, (answer, expected) in enumerate(zip(answers, answer_key)):
        is_correct = normalize_answer(answer, expected) == expected
        if is_correct:
            correct_count += 1
        results.append(QuestionResult(
            question_index=index,
            user_answer=answer,
            correct_answer=expected,
            is_correct=is_correct,
        ))
    return correct_count, results

# ==================== PASS FOLLOW-UPS ====================

async def record_quiz_pass(db: AsyncIOMotorDatabase, user_id: str, course_id: str, quiz_id: str) -> Optional[Progress]:
    """Append the quiz to the learner's passed quizzes, once"""
    progress = await find_progress(db, user_id, course_id)
    if progress is None:
        logger.info("No progress for %s in %s, quiz pass not recorded", user_id, course_id)
        return None

    doc = await modify_document(db, PROGRESS, progress.id, {
        "$addToSet": {"quiz_scores": quiz_id},
        "$set": {"last_accessed": datetime.utcnow()},
    })
    return Progress.from_document(doc)


async def _after_pass(db: AsyncIOMotorDatabase, user_id: str, course_id: str, quiz_id: str):
    progress = await run_followup("record quiz pass", record_quiz_pass, db, user_id, course_id, quiz_id)
    if progress is not None and progress.completion_percentage == 100:
        await run_followup("issue certificate", issue_certificate, db, user_id, course_id)

# ==================== SUBMISSION ====================

async def grade_quiz(
    db: AsyncIOMotorDatabase,
    user_id: str,
    course_id: str,
    quiz_id: str,
    answers: List[Any],
) -> QuizResult:
    quiz = await get_quiz(db, quiz_id)
    if quiz is None:
        raise NotFoundError("Quiz not found")

    try:
        questions = quiz.parsed_questions()
        answer_key = quiz.parsed_answer_key()
    except ValueError as e:
        raise DataIntegrityError("Invalid quiz format", error=str(e))

    if len(answer_key) != len(questions):
        raise DataIntegrityError(
            "Invalid quiz format",
            error=f"{len(questions)} questions but {len(answer_key)} answers in the key",
        )

    if len(answers) != len(questions):
        raise ValidationError(f"Answer count mismatch. Expected {len(questions)}, got {len(answers)}")

    correct_count, results = score_answers(answers, answer_key)
    score = percent(correct_count, len(questions))
    passed = score >= config.PASSING_SCORE

    quiz_result = QuizResult(
        id=new_id(QUIZ_RESULTS),
        user_id=user_id,
        course_id=course_id,
        quiz_id=quiz_id,
        score=score,
        passed=passed,
        correct_count=correct_count,
        total_questions=len(questions),
        results=results,
        submitted_at=datetime.utcnow(),
    )
    await create_document(db, QUIZ_RESULTS, quiz_result.to_document())
    logger.info("Quiz %s graded for %s: %d%% (%s)", quiz_id, user_id, score, "passed" if passed else "failed")

    if passed:
        await _after_pass(db, user_id, course_id, quiz_id)

    await run_followup("notify quiz result", notify_quiz_result,
                       db, user_id, course_id, score, passed, idempotent=False)

    return quiz_result
