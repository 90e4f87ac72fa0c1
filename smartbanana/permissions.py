import logging
from typing import Optional

from fastapi import Depends

from smartbanana.auth import optional_token, verify_token
from smartbanana.database import (
    ANNOUNCEMENTS, CHAPTERS, COURSES, TESTS, USERS, DocumentStore, get_store
)
from smartbanana.errors import Forbidden, NotFound, Unauthorized, ValidationError
from smartbanana.models import Role

logger = logging.getLogger(__name__)


class UserContext:
    """
    Contains validated user profile and class scope
    """
    def __init__(self, user_id: str, profile: dict):
        self.user_id = user_id
        self.role = profile.get("role")
        self.name = profile.get("name")
        self.email = profile.get("email")
        self.user_class = profile.get("user_class")
        self.profile = profile

    @property
    def is_teacher(self) -> bool:
        return self.role == Role.TEACHER.value

    @property
    def is_student(self) -> bool:
        return self.role == Role.STUDENT.value


async def load_user_context(store: DocumentStore, user_id: Optional[str]) -> Optional[UserContext]:
    if not user_id:
        return None
    profile = await store.get(USERS, user_id)
    if not profile:
        return None
    return UserContext(user_id, profile)


# ==================== FASTAPI DEPENDENCIES ====================

async def get_current_user(
    token: dict = Depends(verify_token),
    store: DocumentStore = Depends(get_store),
) -> UserContext:
    """
    Dependency: resolves the bearer token to a user record

    Raises:
        401: Invalid token or unknown user
    """
    user = await load_user_context(store, token.get("sub"))
    if user is None:
        raise Unauthorized("User not found")
    return user


async def get_optional_user(
    token: Optional[dict] = Depends(optional_token),
    store: DocumentStore = Depends(get_store),
) -> Optional[UserContext]:
    """Dependency for class-scoped reads: anonymous callers get None"""
    if token is None:
        return None
    return await load_user_context(store, token.get("sub"))


# ==================== GUARDS ====================

def require_user(user: Optional[UserContext]) -> UserContext:
    if user is None:
        raise Unauthorized()
    return user


def require_role(user: Optional[UserContext], role: Role) -> UserContext:
    """Anonymous or wrong role -> Unauthorized"""
    user = require_user(user)
    if user.role != role.value:
        raise Unauthorized()
    return user


def require_teacher_class(user: Optional[UserContext], what: str) -> UserContext:
    """Teachers can only author class-tagged content once their own class is set"""
    teacher = require_role(user, Role.TEACHER)
    if not teacher.user_class:
        raise ValidationError(f"Teacher must have a registered class before creating {what}")
    return teacher


def check_owner(record: dict, owner_field: str, user: UserContext, label: str):
    if record.get(owner_field) != user.user_id:
        logger.warning(
            "Denied %s %s to %s: owned by %s",
            label, record.get("_id"), user.user_id, record.get(owner_field),
        )
        raise Forbidden(f"Not authorized to modify this {label}")


async def verify_course_ownership(store: DocumentStore, course_id: str, user: Optional[UserContext]) -> dict:
    """
    Validates teacher owns this course

    Raises:
        401: Not a teacher
        404: Course not found
        403: Not the owner
    """
    teacher = require_role(user, Role.TEACHER)
    course = await store.get(COURSES, course_id)
    if not course:
        raise NotFound("Course not found")
    check_owner(course, "teacher_id", teacher, "course")
    return course


async def verify_chapter_ownership(store: DocumentStore, chapter_id: str, user: Optional[UserContext]) -> tuple:
    """
    Validates teacher owns the course this chapter belongs to

    Returns:
        (chapter, course)
    """
    teacher = require_role(user, Role.TEACHER)
    chapter = await store.get(CHAPTERS, chapter_id)
    if not chapter:
        raise NotFound("Chapter not found")
    course = await store.get(COURSES, chapter["course_id"])
    if not course:
        raise NotFound("Parent course not found")
    check_owner(course, "teacher_id", teacher, "chapter")
    return chapter, course


async def verify_test_ownership(store: DocumentStore, test_id: str, user: Optional[UserContext]) -> dict:
    teacher = require_role(user, Role.TEACHER)
    test = await store.get(TESTS, test_id)
    if not test:
        raise NotFound("Test not found")
    check_owner(test, "teacher_id", teacher, "test")
    return test


async def verify_announcement_ownership(store: DocumentStore, announcement_id: str, user: Optional[UserContext]) -> dict:
    teacher = require_role(user, Role.TEACHER)
    announcement = await store.get(ANNOUNCEMENTS, announcement_id)
    if not announcement:
        raise NotFound("Announcement not found")
    check_owner(announcement, "author_id", teacher, "announcement")
    return announcement


# ==================== CLASS SCOPE ====================

def class_scope(user: Optional[UserContext]) -> Optional[str]:
    """Viewer's class for scoped reads, or None when nothing should be shown"""
    if user is None or not user.user_class:
        return None
    return user.user_class


def can_view_course(course: dict, user: Optional[UserContext]) -> bool:
    """Owner always; everyone else only for published courses of their class"""
    if user is None:
        return False
    if course.get("teacher_id") == user.user_id:
        return True
    return bool(course.get("is_published")) and course.get("target_class") == class_scope(user)
