import logging
from typing import List, Optional

from smartbanana.audit import log_audit
from smartbanana.courses.enrollment_service import refresh_course_caches
from smartbanana.database import CHAPTER_COMPLETIONS, CHAPTERS, COURSES, DocumentStore, serialize_doc
from smartbanana.models import Chapter
from smartbanana.permissions import (
    UserContext, can_view_course, verify_chapter_ownership, verify_course_ownership
)

logger = logging.getLogger(__name__)

CHAPTER_UPDATE_FIELDS = ("title", "content", "image_url")


def sort_chapters(chapters: List[dict]) -> List[dict]:
    """By order, then creation time; ties keep query order"""
    return sorted(chapters, key=lambda c: (c.get("order", 0), c.get("created_at")))


async def next_order(store: DocumentStore, course_id: str) -> int:
    existing = await store.query_by_index(CHAPTERS, {"course_id": course_id})
    if not existing:
        return 0
    return max(c.get("order", 0) for c in existing) + 1

# ==================== CHAPTER CRUD ====================

async def create_chapter(store: DocumentStore, user: Optional[UserContext], data: dict) -> str:
    """
    Only the course owner adds chapters; order defaults to the end of the course
    """
    course = await verify_course_ownership(store, data["course_id"], user)

    order = data.get("order")
    if order is None:
        order = await next_order(store, course["_id"])

    chapter = Chapter(
        course_id=course["_id"],
        title=data["title"],
        content=data["content"],
        image_url=data.get("image_url"),
        order=order,
    )
    chapter_id = await store.insert(CHAPTERS, chapter.model_dump())
    await refresh_course_caches(store, course["_id"])

    logger.info("Chapter %s added to course %s at order %s", chapter_id, course["_id"], order)
    return chapter_id


async def update_chapter(store: DocumentStore, user: Optional[UserContext], chapter_id: str, data: dict) -> str:
    """data holds only the fields the caller sent; image_url=None clears the image"""
    await verify_chapter_ownership(store, chapter_id, user)

    updates = {
        k: v for k, v in data.items()
        if k in CHAPTER_UPDATE_FIELDS and (v is not None or k == "image_url")
    }
    if updates:
        await store.patch(CHAPTERS, chapter_id, updates)
    return "Chapter updated"


async def set_chapter_order(store: DocumentStore, user: Optional[UserContext], chapter_id: str, order: int) -> str:
    # Siblings keep their order values
    await verify_chapter_ownership(store, chapter_id, user)
    await store.patch(CHAPTERS, chapter_id, {"order": order})
    return "Order updated"


async def delete_chapter(store: DocumentStore, user: Optional[UserContext], chapter_id: str) -> str:
    chapter, course = await verify_chapter_ownership(store, chapter_id, user)

    for completion in await store.query_by_index(CHAPTER_COMPLETIONS, {"chapter_id": chapter_id}):
        await store.delete(CHAPTER_COMPLETIONS, completion["_id"])
    await store.delete(CHAPTERS, chapter_id)
    await refresh_course_caches(store, course["_id"])

    await log_audit(store, user, "delete_chapter", "chapter", chapter_id, {"course_id": course["_id"]})
    return "Chapter deleted"

# ==================== CHAPTER LISTING ====================

async def list_chapters(store: DocumentStore, user: Optional[UserContext], course_id: str) -> List[dict]:
    """Chapters of a course the viewer may see; empty otherwise"""
    course = await store.get(COURSES, course_id)
    if not course or not can_view_course(course, user):
        return []
    chapters = await store.query_by_index(CHAPTERS, {"course_id": course_id}, sort=[("created_at", 1)])
    return [serialize_doc(c) for c in sort_chapters(chapters)]
