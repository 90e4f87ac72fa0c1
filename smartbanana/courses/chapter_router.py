from fastapi import APIRouter, Depends
from typing import List, Optional

from smartbanana.courses import chapter_service, enrollment_service
from smartbanana.courses.course_schemas import ChapterCreate, ChapterOrder, ChapterResponse, ChapterUpdate
from smartbanana.database import DocumentStore, get_store
from smartbanana.permissions import UserContext, get_current_user, get_optional_user

router = APIRouter(prefix="/chapters", tags=["Chapters"])


@router.get("/course/{course_id}", response_model=List[ChapterResponse])
async def list_chapters(
    course_id: str,
    store: DocumentStore = Depends(get_store),
    user: Optional[UserContext] = Depends(get_optional_user)
):
    return await chapter_service.list_chapters(store, user, course_id)

@router.post("", status_code=201)
async def create_chapter(
    data: ChapterCreate,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    chapter_id = await chapter_service.create_chapter(store, user, data.model_dump())
    return {"chapter_id": chapter_id}

@router.patch("/{chapter_id}")
async def update_chapter(
    chapter_id: str,
    data: ChapterUpdate,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    message = await chapter_service.update_chapter(store, user, chapter_id, data.model_dump(exclude_unset=True))
    return {"message": message}

@router.put("/{chapter_id}/order")
async def set_order(
    chapter_id: str,
    data: ChapterOrder,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    return {"message": await chapter_service.set_chapter_order(store, user, chapter_id, data.order)}

@router.delete("/{chapter_id}")
async def delete_chapter(
    chapter_id: str,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    return {"message": await chapter_service.delete_chapter(store, user, chapter_id)}

@router.post("/{chapter_id}/complete")
async def complete_chapter(
    chapter_id: str,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    """
    Mark a chapter done; repeating is harmless and reports "Chapter already completed"
    """
    return {"message": await enrollment_service.complete_chapter(store, user, chapter_id)}
