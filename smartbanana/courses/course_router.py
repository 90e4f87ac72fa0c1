from fastapi import APIRouter, Depends
from typing import List, Optional

from smartbanana.courses import course_service, enrollment_service
from smartbanana.courses.course_schemas import (
    CourseCreate, CourseResponse, CourseUpdate, ReconcileReport, StudentCourseResponse
)
from smartbanana.database import DocumentStore, get_store
from smartbanana.permissions import UserContext, get_current_user, get_optional_user

router = APIRouter(prefix="/courses", tags=["Course Management"])

# ==================== COURSE LISTINGS ====================

@router.get("/published", response_model=List[CourseResponse])
async def list_published_courses(
    store: DocumentStore = Depends(get_store),
    user: Optional[UserContext] = Depends(get_optional_user)
):
    """Published courses for the caller's class"""
    return await course_service.list_published_courses(store, user)

@router.get("/mine", response_model=List[CourseResponse])
async def list_my_courses(
    store: DocumentStore = Depends(get_store),
    user: Optional[UserContext] = Depends(get_optional_user)
):
    return await course_service.list_teacher_courses(store, user)

@router.get("/student", response_model=List[StudentCourseResponse])
async def list_student_courses(
    store: DocumentStore = Depends(get_store),
    user: Optional[UserContext] = Depends(get_optional_user)
):
    """Class courses with the student's progress and NEW tag"""
    return await course_service.list_student_courses(store, user)

# ==================== COURSE CRUD ====================

@router.post("", status_code=201)
async def create_course(
    data: CourseCreate,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    course_id = await course_service.create_course(store, user, data.model_dump())
    return {"course_id": course_id}

@router.post("/defaults")
async def ensure_default_courses(
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    created = await course_service.ensure_default_courses(store, user)
    return {"created": created}

@router.patch("/{course_id}")
async def update_course(
    course_id: str,
    data: CourseUpdate,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    """
    Owner-only: title, description, publish state
    """
    message = await course_service.update_course(store, user, course_id, data.model_dump(exclude_none=True))
    return {"message": message}

@router.delete("/{course_id}")
async def delete_course(
    course_id: str,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    return {"message": await course_service.delete_course(store, user, course_id)}

# ==================== ENROLLMENT ====================

@router.post("/{course_id}/enroll")
async def enroll(
    course_id: str,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    return {"message": await enrollment_service.enroll_in_course(store, user, course_id)}

@router.post("/{course_id}/access")
async def mark_accessed(
    course_id: str,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    return await enrollment_service.mark_course_accessed(store, user, course_id)

@router.post("/{course_id}/reconcile", response_model=ReconcileReport)
async def reconcile(
    course_id: str,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    """
    Rebuild roster, lesson count, progress and teacher counters from facts
    """
    return await enrollment_service.reconcile_course(store, user, course_id)
