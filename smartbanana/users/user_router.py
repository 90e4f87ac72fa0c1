from fastapi import APIRouter, Depends
from typing import List, Optional

from smartbanana.audit import get_audit_trail
from smartbanana.database import DocumentStore, get_store
from smartbanana.models import Role, UserClass
from smartbanana.permissions import UserContext, get_current_user, require_role
from smartbanana.users import admin_service, user_service
from smartbanana.users.user_schemas import (
    AuditEntry, CreditAward, CreditBalance, ExtendedProfileSetup, ProfileUpdate,
    RoleSetup, StudentProfileSubsetUpdate, StudentSummary
)

router = APIRouter(tags=["Users"])

# ==================== SETUP & PROFILE ====================

@router.get("/users/me")
async def get_my_profile(
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    return await user_service.get_me(store, user)

@router.post("/setup/role")
async def setup_role(
    data: RoleSetup,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    """
    Pick teacher or student once, right after signup
    """
    return {"message": await user_service.setup_role(store, user, data.role, data.name)}

@router.post("/setup/profile")
async def setup_extended_profile(
    data: ExtendedProfileSetup,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    message = await user_service.setup_extended_profile(store, user, data.model_dump(mode="json"))
    return {"message": message}

@router.patch("/users/me")
async def update_my_profile(
    data: ProfileUpdate,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    message = await user_service.update_profile(store, user, data.model_dump(mode="json", exclude_none=True))
    return {"message": message}

@router.post("/users/me/credits", response_model=CreditBalance)
async def add_credits(
    data: CreditAward,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    return await user_service.add_credits(store, user, data.amount)

# ==================== TEACHER ADMIN ====================

@router.get("/admin/students", response_model=List[StudentSummary])
async def list_students(
    target_class: Optional[UserClass] = None,
    search_name: Optional[str] = None,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    """
    Students visible to teachers, optionally filtered by class and name
    """
    return await admin_service.list_students(
        store, user,
        target_class=target_class.value if target_class else None,
        search_name=search_name,
    )

@router.patch("/admin/students/{student_id}")
async def update_student(
    student_id: str,
    data: StudentProfileSubsetUpdate,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    message = await admin_service.update_student_profile_subset(
        store, user, student_id, data.model_dump(mode="json", exclude_none=True)
    )
    return {"message": message}

@router.delete("/admin/students/{student_id}")
async def delete_student(
    student_id: str,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    return {"message": await admin_service.delete_student_account(store, user, student_id)}

@router.get("/admin/audit", response_model=List[AuditEntry])
async def audit_trail(
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    limit: int = 100,
    store: DocumentStore = Depends(get_store),
    user: UserContext = Depends(get_current_user)
):
    require_role(user, Role.TEACHER)
    return await get_audit_trail(store, target_type, target_id, min(limit, 500))
