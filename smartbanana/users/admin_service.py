"""
Teacher-side administration of student accounts.
"""

import logging
from typing import List, Optional

from smartbanana.audit import log_audit
from smartbanana.database import (
    CHAPTER_COMPLETIONS, COURSES, ENROLLMENTS, TEST_RESULTS, USERS, DocumentStore
)
from smartbanana.errors import Forbidden, NotFound
from smartbanana.models import Role
from smartbanana.permissions import UserContext, require_role
from smartbanana.progression import DEFAULT_RANK

logger = logging.getLogger(__name__)


async def decrement_counter(store: DocumentStore, user_id: str, field: str, amount: int = 1):
    """$inc downwards, never leaving a cached counter below zero"""
    if not amount:
        return
    doc = await store.increment(USERS, user_id, {field: -amount})
    if doc is not None and doc.get(field, 0) < 0:
        await store.patch(USERS, user_id, {field: 0})


async def list_students(
    store: DocumentStore,
    user: Optional[UserContext],
    target_class: Optional[str] = None,
    search_name: Optional[str] = None
) -> List[dict]:
    require_role(user, Role.TEACHER)

    match = {"role": Role.STUDENT.value}
    if target_class:
        match["user_class"] = target_class
    students = await store.query_by_index(USERS, match)

    if search_name:
        needle = search_name.lower()
        students = [s for s in students if needle in (s.get("name") or "").lower()]

    return [
        {
            "id": s["_id"],
            "name": s.get("name") or "Unknown",
            "email": s.get("email") or "",
            "user_class": s.get("user_class") or "Unknown",
            "credits": s.get("credits") or 0,
            "rank": s.get("rank") or DEFAULT_RANK,
            "total_tests_completed": s.get("total_tests_completed") or 0,
            "phone_number": s.get("phone_number") or "",
            "address": s.get("address") or "",
            "last_login_at": s.get("last_login_at"),
        }
        for s in students
    ]


async def update_student_profile_subset(
    store: DocumentStore,
    user: Optional[UserContext],
    student_id: str,
    data: dict
) -> str:
    teacher = require_role(user, Role.TEACHER)

    student = await store.get(USERS, student_id)
    if not student or student.get("role") != Role.STUDENT.value:
        raise NotFound("Student not found")

    if data:
        await store.patch(USERS, student_id, data)
        await log_audit(store, teacher, "update_student", "user", student_id, data)
    return "Student profile updated"


async def delete_student_account(store: DocumentStore, user: Optional[UserContext], student_id: str) -> str:
    """
    Remove a student and everything hanging off the account, keeping each
    course roster and its teacher's enrollment counter in step.
    """
    teacher = require_role(user, Role.TEACHER)

    target = await store.get(USERS, student_id)
    if not target:
        raise NotFound("User not found")
    if target.get("role") != Role.STUDENT.value:
        raise Forbidden("Only student accounts can be deleted")

    enrollments = await store.query_by_index(ENROLLMENTS, {"student_id": student_id})
    for enrollment in enrollments:
        course = await store.get(COURSES, enrollment["course_id"])
        if course:
            await store.pull(COURSES, course["_id"], "enrolled_students", student_id)
            await decrement_counter(store, course["teacher_id"], "total_students_enrolled")
        await store.delete(ENROLLMENTS, enrollment["_id"])

    for completion in await store.query_by_index(CHAPTER_COMPLETIONS, {"student_id": student_id}):
        await store.delete(CHAPTER_COMPLETIONS, completion["_id"])

    for result in await store.query_by_index(TEST_RESULTS, {"student_id": student_id}):
        await store.delete(TEST_RESULTS, result["_id"])

    await store.delete(USERS, student_id)
    await log_audit(store, teacher, "delete_student", "user", student_id, {
        "enrollments_removed": len(enrollments),
    })
    logger.info("Teacher %s deleted student %s", teacher.user_id, student_id)
    return "Student account deleted"
