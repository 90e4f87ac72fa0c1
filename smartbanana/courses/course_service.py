import logging
from datetime import datetime
from typing import Dict, List, Optional

from smartbanana.audit import log_audit
from smartbanana.database import (
    ANNOUNCEMENTS, CHAPTER_COMPLETIONS, CHAPTERS, COURSES, ENROLLMENTS, TESTS, USERS,
    DocumentStore, serialize_doc
)
from smartbanana.models import Course, Role, SubjectType
from smartbanana.permissions import (
    UserContext, class_scope, require_teacher_class, verify_course_ownership
)
from smartbanana.users.admin_service import decrement_counter

logger = logging.getLogger(__name__)

DEFAULT_SUBJECTS = [
    ("Mathematics", "Core math adventures and challenges."),
    ("Physics", "Explore motion, forces, and energy."),
    ("Chemistry", "Elements, compounds, and reactions."),
    ("Biology", "Life sciences and ecosystems."),
    ("Computer Science", "Algorithms, logic, and code."),
    ("Robotics", "Sensors, control, and automation."),
    ("Astronomy", "Stars, planets, and the universe."),
]

COURSE_UPDATE_FIELDS = ("title", "description", "is_published")


async def teacher_names(
    store: DocumentStore,
    docs: List[dict],
    field: str = "teacher_id",
    fallback: str = "Unknown Teacher"
) -> Dict[str, str]:
    """Display names for the owners of docs, one lookup per distinct owner"""
    names = {}
    for doc in docs:
        owner_id = doc.get(field)
        if owner_id and owner_id not in names:
            owner = await store.get(USERS, owner_id)
            names[owner_id] = (owner or {}).get("name") or fallback
    return names

# ==================== COURSE CRUD ====================

async def create_course(store: DocumentStore, user: Optional[UserContext], data: dict) -> str:
    """
    Create a draft course tagged with the teacher's own class
    """
    teacher = require_teacher_class(user, "courses")

    course = Course(
        title=data["title"],
        description=data["description"],
        teacher_id=teacher.user_id,
        target_class=teacher.user_class,
    )
    course_id = await store.insert(COURSES, course.model_dump())
    await store.increment(USERS, teacher.user_id, {"total_courses_created": 1})

    await log_audit(store, teacher, "create_course", "course", course_id)
    logger.info("Teacher %s created course %s for %s", teacher.user_id, course_id, teacher.user_class)
    return course_id


async def update_course(store: DocumentStore, user: Optional[UserContext], course_id: str, data: dict) -> str:
    await verify_course_ownership(store, course_id, user)

    updates = {k: v for k, v in data.items() if k in COURSE_UPDATE_FIELDS and v is not None}
    updates["updated_at"] = datetime.utcnow()
    await store.patch(COURSES, course_id, updates)

    await log_audit(store, user, "update_course", "course", course_id, {k: v for k, v in data.items() if v is not None})
    return "Course updated"


async def delete_course(store: DocumentStore, user: Optional[UserContext], course_id: str) -> str:
    """
    Delete a course with its chapters, completions and enrollments.
    Tests and announcements outlive it with course_id cleared.
    """
    course = await verify_course_ownership(store, course_id, user)

    for completion in await store.query_by_index(CHAPTER_COMPLETIONS, {"course_id": course_id}):
        await store.delete(CHAPTER_COMPLETIONS, completion["_id"])

    chapters = await store.query_by_index(CHAPTERS, {"course_id": course_id})
    for chapter in chapters:
        await store.delete(CHAPTERS, chapter["_id"])

    enrollments = await store.query_by_index(ENROLLMENTS, {"course_id": course_id})
    for enrollment in enrollments:
        await store.delete(ENROLLMENTS, enrollment["_id"])

    for test in await store.query_by_index(TESTS, {"course_id": course_id}):
        await store.patch(TESTS, test["_id"], {"course_id": None})
    for announcement in await store.query_by_index(ANNOUNCEMENTS, {"course_id": course_id}):
        await store.patch(ANNOUNCEMENTS, announcement["_id"], {"course_id": None})

    await store.delete(COURSES, course_id)
    await decrement_counter(store, course["teacher_id"], "total_courses_created")
    await decrement_counter(store, course["teacher_id"], "total_students_enrolled", len(enrollments))

    await log_audit(store, user, "delete_course", "course", course_id, {
        "chapters_removed": len(chapters),
        "enrollments_removed": len(enrollments),
    })
    logger.info("Course %s deleted with %d chapters, %d enrollments", course_id, len(chapters), len(enrollments))
    return "Course deleted"

# ==================== COURSE LISTINGS ====================

async def list_teacher_courses(store: DocumentStore, user: Optional[UserContext]) -> List[dict]:
    # Pages subscribe to this regardless of role, so non-teachers just get nothing
    if user is None or user.role != Role.TEACHER.value:
        return []
    courses = await store.query_by_index(COURSES, {"teacher_id": user.user_id}, sort=[("created_at", -1)])
    return [serialize_doc(c) for c in courses]


async def list_published_courses(store: DocumentStore, user: Optional[UserContext]) -> List[dict]:
    """Published courses of the viewer's class; nothing without a class"""
    user_class = class_scope(user)
    if user_class is None:
        return []

    courses = await store.query_by_index(COURSES, {"target_class": user_class, "is_published": True})
    names = await teacher_names(store, courses)
    return [{**serialize_doc(c), "teacher_name": names.get(c["teacher_id"], "Unknown Teacher")} for c in courses]


async def list_student_courses(store: DocumentStore, user: Optional[UserContext]) -> List[dict]:
    """Published courses of the student's class with their own progress"""
    if user is None or user.role != Role.STUDENT.value or not user.user_class:
        return []

    courses = await store.query_by_index(COURSES, {"target_class": user.user_class, "is_published": True})
    names = await teacher_names(store, courses)
    enrollments = {
        e["course_id"]: e
        for e in await store.query_by_index(ENROLLMENTS, {"student_id": user.user_id})
    }

    results = []
    for course in courses:
        enrollment = enrollments.get(course["_id"])
        last_accessed = enrollment.get("last_accessed") if enrollment else None
        results.append({
            **serialize_doc(course),
            "teacher_name": names.get(course["teacher_id"], "Unknown Teacher"),
            "progress": enrollment.get("progress", 0) if enrollment else 0,
            "last_accessed": last_accessed,
            "is_new": last_accessed is None,
            "is_enrolled": enrollment is not None,
        })
    return results


async def ensure_default_courses(store: DocumentStore, user: Optional[UserContext]) -> List[str]:
    """
    Publish the default subject courses for the teacher's class when missing.
    Returns the ids created by this call.
    """
    teacher = require_teacher_class(user, "courses")

    existing = await store.query_by_index(COURSES, {"target_class": teacher.user_class, "is_published": True})
    have = {
        c["title"] for c in existing
        if c.get("subject_type", SubjectType.DEFAULT.value) == SubjectType.DEFAULT.value
    }

    created = []
    for title, description in DEFAULT_SUBJECTS:
        if title in have:
            continue
        course = Course(
            title=title,
            description=description,
            teacher_id=teacher.user_id,
            target_class=teacher.user_class,
            is_published=True,
            subject_type=SubjectType.DEFAULT,
        )
        created.append(await store.insert(COURSES, course.model_dump()))

    if created:
        await store.increment(USERS, teacher.user_id, {"total_courses_created": len(created)})
        logger.info("Seeded %d default courses for %s", len(created), teacher.user_class)
    return created
