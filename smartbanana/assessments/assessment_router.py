from fastapi import APIRouter, Depends
from typing import List, Optional

from smartbanana.assessments import assessment_service as service
from smartbanana.assessments.assessment_schemas import (
    QuestionIn, SubmissionResult, TestCreate, TestResponse, TestResultResponse,
    TestSubmission, TestUpdate
)
from smartbanana.database import DocumentStore, get_store
from smartbanana.permissions import UserContext, get_current_user, get_optional_user

router = APIRouter(prefix="/tests", tags=["Tests"])

# ==================== LISTINGS ====================

@router.get("/published", response_model=List[TestResponse])
async def list_published_tests(
    store: DocumentStore = Depends(get_store),
    user: Optional[UserContext] = Depends(get_optional_user)
):
    return await service.list_published_tests(store, user)

@router.get("/mine", response_model=List[TestResponse])
async def list_my_tests(
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    return await service.list_teacher_tests(store, user)

@router.get("/results", response_model=List[TestResultResponse])
async def list_my_results(
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    return await service.list_my_results(store, user)

# ==================== AUTHORING ====================

@router.post("", status_code=201)
async def create_test(
    data: TestCreate,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    """
    Create a draft test for the teacher's class (max 10 questions, 4 options each)
    """
    test_id = await service.create_test(store, user, data.model_dump(mode="json"))
    return {"test_id": test_id}

@router.put("/{test_id}")
async def update_test(
    test_id: str,
    data: TestUpdate,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    message = await service.update_test(store, user, test_id, data.model_dump(mode="json", exclude_none=True))
    return {"message": message}

@router.delete("/{test_id}")
async def delete_test(
    test_id: str,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    return {"message": await service.delete_test(store, user, test_id)}

@router.put("/{test_id}/questions/{index}")
async def update_question(
    test_id: str,
    index: int,
    data: QuestionIn,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    """index is 0-based"""
    return {"message": await service.update_question(store, user, test_id, index, data.model_dump())}

@router.delete("/{test_id}/questions/{index}")
async def delete_question(
    test_id: str,
    index: int,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    return {"message": await service.delete_question(store, user, test_id, index)}

# ==================== SUBMISSION ====================

@router.post("/{test_id}/submit", response_model=SubmissionResult)
async def submit_test(
    test_id: str,
    data: TestSubmission,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    return await service.submit_test(store, user, test_id, data.answers)
