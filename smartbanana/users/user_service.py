import logging
import math
from typing import Optional

from smartbanana.database import USERS, DocumentStore, serialize_doc
from smartbanana.errors import NotFound, PreconditionFailed
from smartbanana.models import Role
from smartbanana.permissions import UserContext, require_role, require_user
from smartbanana.progression import DEFAULT_RANK, compute_rank

logger = logging.getLogger(__name__)

# ==================== CREDITS ====================

async def award_credits(
    store: DocumentStore,
    student_id: str,
    credits: int,
    tests_completed: int = 0
) -> dict:
    """
    Add credits (and optionally completed tests) to a student and
    re-derive rank from the new balance.

    Returns:
        {"credits": int, "total_tests_completed": int, "rank": str}
    """
    deltas = {"credits": int(credits)}
    if tests_completed:
        deltas["total_tests_completed"] = tests_completed

    user = await store.increment(USERS, student_id, deltas)
    if user is None:
        raise NotFound("User not found")

    balance = user.get("credits", 0)
    rank = compute_rank(balance)
    if rank != user.get("rank"):
        # A concurrent award moved the balance on; its own write carries the newer rank
        if await store.patch_where(USERS, student_id, {"credits": balance}, {"rank": rank}):
            logger.info("Student %s reached rank %s with %s credits", student_id, rank, balance)

    return {
        "credits": balance,
        "total_tests_completed": user.get("total_tests_completed", 0),
        "rank": rank,
    }


async def add_credits(store: DocumentStore, user: Optional[UserContext], amount: float) -> dict:
    """Manual award path (games, activities); counts as one completed activity"""
    student = require_role(user, Role.STUDENT)
    gained = max(0, math.floor(amount))
    return await award_credits(store, student.user_id, gained, tests_completed=1)

# ==================== PROFILE ====================

async def get_me(store: DocumentStore, user: Optional[UserContext]) -> dict:
    user = require_user(user)
    profile = await store.get(USERS, user.user_id)
    if not profile:
        raise NotFound("User not found")
    profile.pop("password_hash", None)
    return serialize_doc(profile)


async def setup_role(store: DocumentStore, user: Optional[UserContext], role: Role, name: str) -> str:
    """
    First call fixes the role and zeroes the role's counters.
    Calling again with the same role only renames.
    """
    user = require_user(user)
    role = Role(role)

    if user.role:
        if user.role != role.value:
            raise PreconditionFailed("Role already set")
        await store.patch(USERS, user.user_id, {"name": name})
        return "User setup complete"

    updates = {"role": role.value, "name": name}
    if role == Role.STUDENT:
        updates.update({"credits": 0, "rank": DEFAULT_RANK, "total_tests_completed": 0})
    else:
        updates.update({"total_courses_created": 0, "total_students_enrolled": 0})

    await store.patch(USERS, user.user_id, updates)
    logger.info("User %s set up as %s", user.user_id, role.value)
    return "User setup complete"


async def setup_extended_profile(store: DocumentStore, user: Optional[UserContext], data: dict) -> str:
    """Registration details; the class can only be changed by a teacher afterwards"""
    user = require_user(user)
    user_class = data["user_class"]
    if user.user_class and user.user_class != user_class:
        raise PreconditionFailed("Class already set")

    await store.patch(USERS, user.user_id, {
        "registration_id": data["registration_id"],
        "date_of_birth": data["date_of_birth"],
        "gender": data["gender"],
        "user_class": user_class,
    })
    return "Profile setup complete"


async def update_profile(store: DocumentStore, user: Optional[UserContext], data: dict) -> str:
    user = require_user(user)
    if data:
        await store.patch(USERS, user.user_id, data)
    return "Profile updated"
