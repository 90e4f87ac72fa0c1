import logging
import time
from typing import List, Optional

from smartbanana.audit import log_audit
from smartbanana.courses.course_service import teacher_names
from smartbanana.database import ANNOUNCEMENTS, DocumentStore, serialize_doc
from smartbanana.models import Announcement
from smartbanana.permissions import (
    UserContext, class_scope, require_teacher_class,
    verify_announcement_ownership, verify_course_ownership
)

logger = logging.getLogger(__name__)

ANNOUNCEMENT_UPDATE_FIELDS = ("title", "content", "priority", "schedule_at")


def now_ms() -> int:
    return int(time.time() * 1000)


async def create_announcement(store: DocumentStore, user: Optional[UserContext], data: dict) -> str:
    """
    Announcements always target the author's own class; global scope is off
    """
    teacher = require_teacher_class(user, "announcements")

    course_id = data.get("course_id")
    if course_id:
        await verify_course_ownership(store, course_id, teacher)

    if data.get("is_global"):
        logger.info("Ignoring is_global=true from %s; scoped to %s", teacher.user_id, teacher.user_class)

    announcement = Announcement(
        title=data["title"],
        content=data["content"],
        author_id=teacher.user_id,
        is_global=False,
        course_id=course_id,
        priority=data.get("priority") or "medium",
        target_class=teacher.user_class,
        schedule_at=data.get("schedule_at"),
    )
    announcement_id = await store.insert(ANNOUNCEMENTS, announcement.model_dump())

    await log_audit(store, teacher, "create_announcement", "announcement", announcement_id)
    return announcement_id


async def update_announcement(
    store: DocumentStore,
    user: Optional[UserContext],
    announcement_id: str,
    data: dict
) -> str:
    await verify_announcement_ownership(store, announcement_id, user)

    updates = {k: v for k, v in data.items() if k in ANNOUNCEMENT_UPDATE_FIELDS and v is not None}
    if updates:
        await store.patch(ANNOUNCEMENTS, announcement_id, updates)
    return "Announcement updated"


async def delete_announcement(store: DocumentStore, user: Optional[UserContext], announcement_id: str) -> str:
    await verify_announcement_ownership(store, announcement_id, user)
    await store.delete(ANNOUNCEMENTS, announcement_id)
    await log_audit(store, user, "delete_announcement", "announcement", announcement_id)
    return "Announcement deleted"


async def list_announcements(store: DocumentStore, user: Optional[UserContext]) -> List[dict]:
    """
    Newest first, viewer's class only. Scheduled announcements stay hidden
    until their time, except from their author.
    """
    user_class = class_scope(user)
    if user_class is None:
        return []

    announcements = await store.query_by_index(
        ANNOUNCEMENTS, {"target_class": user_class}, sort=[("created_at", -1)]
    )
    current = now_ms()
    visible = [
        a for a in announcements
        if not a.get("schedule_at") or a["schedule_at"] <= current or a["author_id"] == user.user_id
    ]

    names = await teacher_names(store, visible, field="author_id", fallback="Unknown")
    return [
        {**serialize_doc(a), "author_name": names.get(a["author_id"], "Unknown")}
        for a in visible
    ]
