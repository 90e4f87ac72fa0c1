import logging
from datetime import datetime
from typing import List, Optional

from smartbanana import config
from smartbanana.audit import log_audit
from smartbanana.courses.course_service import teacher_names
from smartbanana.database import TEST_RESULTS, TESTS, DocumentStore, serialize_doc
from smartbanana.errors import NotFound, ValidationError
from smartbanana.models import Question, Role, Test, TestResult
from smartbanana.permissions import (
    UserContext, class_scope, require_role, require_teacher_class,
    verify_course_ownership, verify_test_ownership
)
from smartbanana.users.user_service import award_credits

logger = logging.getLogger(__name__)

TEST_UPDATE_FIELDS = ("title", "description", "is_published", "difficulty")

# ==================== QUESTION RULES ====================

def validate_questions(questions: List[dict]) -> List[dict]:
    """
    Raise ValidationError naming the first offending question (1-based).

    Returns the questions normalised through the Question model.
    """
    if len(questions) > config.MAX_QUESTIONS_PER_TEST:
        raise ValidationError(f"A test can have at most {config.MAX_QUESTIONS_PER_TEST} questions")

    normalised = []
    for number, q in enumerate(questions, start=1):
        options = q.get("options") or []
        if len(options) != config.OPTIONS_PER_QUESTION:
            raise ValidationError(
                f"Question {number} must have exactly {config.OPTIONS_PER_QUESTION} options"
            )
        answer = q.get("correct_answer")
        if isinstance(answer, bool) or not isinstance(answer, int) or not 0 <= answer < config.OPTIONS_PER_QUESTION:
            raise ValidationError(
                f"Question {number} correct answer must be between 0 and {config.OPTIONS_PER_QUESTION - 1}"
            )
        if (q.get("points") or 0) <= 0:
            raise ValidationError(f"Question {number} must be worth more than 0 points")
        normalised.append(Question(**q).model_dump())
    return normalised


def total_points(questions: List[dict]) -> int:
    return sum(q["points"] for q in questions)


def score_answers(questions: List[dict], answers: List[int]) -> tuple:
    """
    Returns (score, correct_count). Missing answers count as wrong;
    extra answers are ignored.
    """
    score = 0
    correct = 0
    for index, question in enumerate(questions):
        if index < len(answers) and answers[index] == question["correct_answer"]:
            score += question["points"]
            correct += 1
    return score, correct


async def _save_questions(store: DocumentStore, test_id: str, questions: List[dict]):
    """Question set and its total always land in the same patch"""
    questions = validate_questions(questions)
    await store.patch(TESTS, test_id, {
        "questions": questions,
        "total_points": total_points(questions),
        "updated_at": datetime.utcnow(),
    })

# ==================== TEST AUTHORING ====================

async def create_test(store: DocumentStore, user: Optional[UserContext], data: dict) -> str:
    teacher = require_teacher_class(user, "tests")
    questions = validate_questions(data.get("questions") or [])

    course_id = data.get("course_id")
    if course_id:
        await verify_course_ownership(store, course_id, teacher)

    test = Test(
        title=data["title"],
        description=data["description"],
        course_id=course_id,
        teacher_id=teacher.user_id,
        target_class=teacher.user_class,
        questions=questions,
        total_points=total_points(questions),
        difficulty=data.get("difficulty"),
    )
    test_id = await store.insert(TESTS, test.model_dump())

    await log_audit(store, teacher, "create_test", "test", test_id)
    logger.info("Teacher %s created test %s with %d questions", teacher.user_id, test_id, len(questions))
    return test_id


async def update_test(store: DocumentStore, user: Optional[UserContext], test_id: str, data: dict) -> str:
    await verify_test_ownership(store, test_id, user)

    if data.get("questions") is not None:
        await _save_questions(store, test_id, data["questions"])

    updates = {k: v for k, v in data.items() if k in TEST_UPDATE_FIELDS and v is not None}
    if updates:
        updates["updated_at"] = datetime.utcnow()
        await store.patch(TESTS, test_id, updates)
    return "Test updated"


def _check_index(test: dict, index: int):
    if not 0 <= index < len(test.get("questions", [])):
        raise ValidationError(f"Question {index + 1} does not exist")


async def update_question(
    store: DocumentStore,
    user: Optional[UserContext],
    test_id: str,
    index: int,
    question: dict
) -> str:
    test = await verify_test_ownership(store, test_id, user)
    _check_index(test, index)

    questions = list(test["questions"])
    questions[index] = question
    await _save_questions(store, test_id, questions)
    return "Question updated"


async def delete_question(store: DocumentStore, user: Optional[UserContext], test_id: str, index: int) -> str:
    test = await verify_test_ownership(store, test_id, user)
    _check_index(test, index)

    questions = [q for i, q in enumerate(test["questions"]) if i != index]
    await _save_questions(store, test_id, questions)
    return "Question deleted"


async def delete_test(store: DocumentStore, user: Optional[UserContext], test_id: str) -> str:
    # Results stay; they are the students' record
    await verify_test_ownership(store, test_id, user)
    await store.delete(TESTS, test_id)
    await log_audit(store, user, "delete_test", "test", test_id)
    return "Test deleted"

# ==================== TEST LISTINGS ====================

def _public_view(test: dict, viewer: UserContext) -> dict:
    out = serialize_doc(test)
    if test.get("teacher_id") != viewer.user_id:
        out["questions"] = [{**q, "correct_answer": None} for q in test.get("questions", [])]
    return out


async def list_teacher_tests(store: DocumentStore, user: Optional[UserContext]) -> List[dict]:
    teacher = require_role(user, Role.TEACHER)
    tests = await store.query_by_index(TESTS, {"teacher_id": teacher.user_id}, sort=[("created_at", -1)])
    return [serialize_doc(t) for t in tests]


async def list_published_tests(store: DocumentStore, user: Optional[UserContext]) -> List[dict]:
    """Published tests of the viewer's class, answer keys hidden from non-owners"""
    user_class = class_scope(user)
    if user_class is None:
        return []

    tests = await store.query_by_index(TESTS, {"target_class": user_class, "is_published": True})
    names = await teacher_names(store, tests)
    return [
        {**_public_view(t, user), "teacher_name": names.get(t["teacher_id"], "Unknown Teacher")}
        for t in tests
    ]

# ==================== SUBMISSION ====================

async def submit_test(store: DocumentStore, user: Optional[UserContext], test_id: str, answers: List[int]) -> dict:
    """
    Score a submission and pay one credit per correct answer.

    Every submission is recorded and paid; resubmitting is allowed.
    """
    student = require_role(user, Role.STUDENT)

    test = await store.get(TESTS, test_id)
    if not test or not test.get("is_published") or test.get("target_class") != student.user_class:
        raise NotFound("Test not found or not published")

    questions = test.get("questions", [])
    score, correct = score_answers(questions, answers)

    result = TestResult(
        test_id=test_id,
        student_id=student.user_id,
        score=score,
        total_points=test.get("total_points", 0),
        correct_count=correct,
        credits_earned=correct,
        answers=answers,
    )
    await store.insert(TEST_RESULTS, result.model_dump())

    balance = await award_credits(store, student.user_id, correct, tests_completed=1)
    logger.info(
        "Student %s scored %s/%s on test %s (+%d credits, rank=%s)",
        student.user_id, score, test.get("total_points", 0), test_id, correct, balance["rank"],
    )

    return {"score": score, "total_points": test.get("total_points", 0), "credits_earned": correct}


async def list_my_results(store: DocumentStore, user: Optional[UserContext]) -> List[dict]:
    student = require_role(user, Role.STUDENT)
    results = await store.query_by_index(
        TEST_RESULTS, {"student_id": student.user_id}, sort=[("completed_at", -1)]
    )

    titles = {}
    out = []
    for r in results:
        if r["test_id"] not in titles:
            test = await store.get(TESTS, r["test_id"])
            titles[r["test_id"]] = test["title"] if test else "Deleted test"
        out.append({**serialize_doc(r), "test_title": titles[r["test_id"]]})
    return out
