"""
Enrollment & completion tracking.

Enrollment rows and chapter completions are the facts; course progress,
the course roster (enrolled_students), total_lessons and the teacher's
total_students_enrolled are caches derived from them. Caches are refreshed
after each event and can be rebuilt with reconcile_course.
"""

import logging
from datetime import datetime
from typing import Optional

from smartbanana import config
from smartbanana.database import (
    CHAPTER_COMPLETIONS, CHAPTERS, COURSES, ENROLLMENTS, USERS, DocumentStore, DuplicateRecord
)
from smartbanana.errors import Forbidden, NotFound, PreconditionFailed, ValidationError
from smartbanana.models import ChapterCompletion, Enrollment, Role
from smartbanana.permissions import UserContext, require_role, verify_course_ownership
from smartbanana.progression import progress_percent
from smartbanana.users.user_service import award_credits

logger = logging.getLogger(__name__)

ALREADY_ENROLLED = "Already enrolled in this course"

# ==================== LOOKUPS ====================

async def get_enrollment(store: DocumentStore, course_id: str, student_id: str) -> Optional[dict]:
    return await store.find_one(ENROLLMENTS, {"course_id": course_id, "student_id": student_id})


async def count_chapters(store: DocumentStore, course_id: str) -> int:
    return len(await store.query_by_index(CHAPTERS, {"course_id": course_id}))

# ==================== DERIVED PROGRESS ====================

async def recompute_progress(store: DocumentStore, enrollment: dict, total_chapters: int = None) -> int:
    """Progress of one enrollment from its completion facts"""
    if total_chapters is None:
        total_chapters = await count_chapters(store, enrollment["course_id"])
    completed = len(await store.query_by_index(CHAPTER_COMPLETIONS, {
        "student_id": enrollment["student_id"],
        "course_id": enrollment["course_id"],
    }))
    progress = progress_percent(completed, total_chapters)
    if progress != enrollment.get("progress"):
        await store.patch(ENROLLMENTS, enrollment["_id"], {"progress": progress})
    return progress


async def refresh_course_caches(store: DocumentStore, course_id: str) -> int:
    """
    After the chapter set changes: total_lessons and every enrollment's
    progress. Returns the chapter count.
    """
    total = await count_chapters(store, course_id)
    await store.patch(COURSES, course_id, {"total_lessons": total, "updated_at": datetime.utcnow()})
    for enrollment in await store.query_by_index(ENROLLMENTS, {"course_id": course_id}):
        await recompute_progress(store, enrollment, total)
    return total

# ==================== ENROLLMENT ====================

async def check_enrollable(store: DocumentStore, student: UserContext, course_id: str) -> dict:
    if not student.user_class:
        raise ValidationError("Student must have a registered class to enroll")

    course = await store.get(COURSES, course_id)
    if not course or not course.get("is_published"):
        raise PreconditionFailed("Course not found or not published")

    if course.get("target_class") != student.user_class:
        raise Forbidden("You can only enroll in courses for your class")

    return course


async def _insert_enrollment(store: DocumentStore, course: dict, student_id: str, last_accessed=None) -> str:
    """
    Enrollment row, roster entry and teacher counter move together.
    Raises DuplicateRecord when the unique (course, student) index rejects the row.
    """
    enrollment = Enrollment(course_id=course["_id"], student_id=student_id, last_accessed=last_accessed)
    enrollment_id = await store.insert(ENROLLMENTS, enrollment.model_dump())

    await store.add_to_set(COURSES, course["_id"], "enrolled_students", student_id)
    await store.increment(USERS, course["teacher_id"], {"total_students_enrolled": 1})

    logger.info("Student %s enrolled in course %s", student_id, course["_id"])
    return enrollment_id


async def enroll_in_course(store: DocumentStore, user: Optional[UserContext], course_id: str) -> str:
    student = require_role(user, Role.STUDENT)
    course = await check_enrollable(store, student, course_id)

    if await get_enrollment(store, course_id, student.user_id):
        raise PreconditionFailed(ALREADY_ENROLLED)

    try:
        await _insert_enrollment(store, course, student.user_id)
    except DuplicateRecord:
        raise PreconditionFailed(ALREADY_ENROLLED)

    return "Enrolled successfully"


async def mark_course_accessed(store: DocumentStore, user: Optional[UserContext], course_id: str) -> dict:
    """Opening a course enrolls the student on first visit, then just stamps last_accessed"""
    student = require_role(user, Role.STUDENT)
    course = await check_enrollable(store, student, course_id)
    now = datetime.utcnow()

    enrollment = await get_enrollment(store, course_id, student.user_id)
    if enrollment is None:
        try:
            await _insert_enrollment(store, course, student.user_id, last_accessed=now)
            return {"ok": True, "enrolled": True}
        except DuplicateRecord:
            enrollment = await get_enrollment(store, course_id, student.user_id)

    await store.patch(ENROLLMENTS, enrollment["_id"], {"last_accessed": now})
    return {"ok": True, "enrolled": False}

# ==================== CHAPTER COMPLETION ====================

async def complete_chapter(store: DocumentStore, user: Optional[UserContext], chapter_id: str) -> str:
    """
    not-completed -> completed, once per (student, chapter).

    A repeat is a no-op that reports "Chapter already completed".
    """
    student = require_role(user, Role.STUDENT)

    chapter = await store.get(CHAPTERS, chapter_id)
    if not chapter:
        raise NotFound("Chapter not found")

    course = await store.get(COURSES, chapter["course_id"])
    if not course:
        raise NotFound("Parent course not found")
    if not course.get("is_published") or course.get("target_class") != student.user_class:
        raise PreconditionFailed("Course not available for this student")

    existing = await store.find_one(CHAPTER_COMPLETIONS, {
        "student_id": student.user_id,
        "chapter_id": chapter_id,
    })
    if existing:
        return "Chapter already completed"

    completion = ChapterCompletion(chapter_id=chapter_id, course_id=course["_id"], student_id=student.user_id)
    try:
        await store.insert(CHAPTER_COMPLETIONS, completion.model_dump())
    except DuplicateRecord:
        return "Chapter already completed"

    balance = await award_credits(store, student.user_id, config.CHAPTER_COMPLETION_CREDITS)

    enrollment = await get_enrollment(store, course["_id"], student.user_id)
    if enrollment:
        await recompute_progress(store, enrollment)
        await store.patch(ENROLLMENTS, enrollment["_id"], {"last_accessed": datetime.utcnow()})

    logger.info(
        "Student %s completed chapter %s (credits=%s, rank=%s)",
        student.user_id, chapter_id, balance["credits"], balance["rank"],
    )
    return "Chapter completed"

# ==================== REPAIR ====================

async def reconcile_course(store: DocumentStore, user: Optional[UserContext], course_id: str) -> dict:
    """
    Rebuild every cache derived from this course's facts, plus the owning
    teacher's counters. Safe to run any number of times.
    """
    course = await verify_course_ownership(store, course_id, user)

    enrollments = await store.query_by_index(ENROLLMENTS, {"course_id": course_id}, sort=[("enrolled_at", 1)])
    roster = [e["student_id"] for e in enrollments]
    if roster != course.get("enrolled_students", []):
        logger.warning("Course %s roster out of step with enrollments; rebuilding", course_id)

    total = await count_chapters(store, course_id)
    await store.patch(COURSES, course_id, {"enrolled_students": roster, "total_lessons": total})

    changed = 0
    for enrollment in enrollments:
        before = enrollment.get("progress")
        if await recompute_progress(store, enrollment, total) != before:
            changed += 1

    teacher_courses = await store.query_by_index(COURSES, {"teacher_id": course["teacher_id"]})
    enrolled = 0
    for c in teacher_courses:
        enrolled += len(await store.query_by_index(ENROLLMENTS, {"course_id": c["_id"]}))
    await store.patch(USERS, course["teacher_id"], {
        "total_courses_created": len(teacher_courses),
        "total_students_enrolled": enrolled,
    })

    return {
        "course_id": course_id,
        "enrolled_students": len(roster),
        "total_lessons": total,
        "progress_updated": changed,
    }
