from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from smartbanana.models import Priority, UserClass


class AnnouncementCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str
    is_global: bool = False  # accepted for compatibility, always stored as False
    course_id: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    schedule_at: Optional[int] = None  # epoch ms

class AnnouncementUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = None
    priority: Optional[Priority] = None
    schedule_at: Optional[int] = None

class AnnouncementResponse(BaseModel):
    id: str
    title: str
    content: str
    author_id: str
    author_name: str
    is_global: bool
    course_id: Optional[str] = None
    priority: Priority
    target_class: UserClass
    schedule_at: Optional[int] = None
    created_at: Optional[datetime] = None
