from fastapi import APIRouter, Depends
from typing import List, Optional

from smartbanana.announcements import announcement_service as service
from smartbanana.announcements.announcement_schemas import (
    AnnouncementCreate, AnnouncementResponse, AnnouncementUpdate
)
from smartbanana.database import DocumentStore, get_store
from smartbanana.permissions import UserContext, get_current_user, get_optional_user

router = APIRouter(prefix="/announcements", tags=["Announcements"])


@router.get("", response_model=List[AnnouncementResponse])
async def list_announcements(
    store: DocumentStore = Depends(get_store),
    user: Optional[UserContext] = Depends(get_optional_user)
):
    return await service.list_announcements(store, user)

@router.post("", status_code=201)
async def create_announcement(
    data: AnnouncementCreate,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    announcement_id = await service.create_announcement(store, user, data.model_dump(mode="json"))
    return {"announcement_id": announcement_id}

@router.patch("/{announcement_id}")
async def update_announcement(
    announcement_id: str,
    data: AnnouncementUpdate,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    message = await service.update_announcement(
        store, user, announcement_id, data.model_dump(mode="json", exclude_none=True)
    )
    return {"message": message}

@router.delete("/{announcement_id}")
async def delete_announcement(
    announcement_id: str,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    return {"message": await service.delete_announcement(store, user, announcement_id)}
