from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from smartbanana.models import SubjectType, UserClass

# ==================== COURSE SCHEMAS ====================

class CourseCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str

class CourseUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    is_published: Optional[bool] = None

class CourseResponse(BaseModel):
    id: str
    title: str
    description: str
    teacher_id: str
    target_class: UserClass
    is_published: bool
    enrolled_students: List[str] = []
    total_lessons: int = 0
    subject_type: Optional[SubjectType] = None
    teacher_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class StudentCourseResponse(CourseResponse):
    progress: int = 0
    last_accessed: Optional[datetime] = None
    is_new: bool = True
    is_enrolled: bool = False

# ==================== CHAPTER SCHEMAS ====================

class ChapterCreate(BaseModel):
    course_id: str
    title: str = Field(..., min_length=1, max_length=200)
    content: str
    image_url: Optional[str] = None
    order: Optional[int] = None

class ChapterUpdate(BaseModel):
    # image_url may be sent as null to clear it
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = None
    image_url: Optional[str] = None

class ChapterOrder(BaseModel):
    order: int

class ChapterResponse(BaseModel):
    id: str
    course_id: str
    title: str
    content: str
    image_url: Optional[str] = None
    order: int
    created_at: Optional[datetime] = None

# ==================== ENROLLMENT SCHEMAS ====================

class ReconcileReport(BaseModel):
    course_id: str
    enrolled_students: int
    total_lessons: int
    progress_updated: int
