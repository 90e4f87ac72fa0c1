from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from smartbanana.models import Gender, Role, UserClass

# ==================== REQUEST SCHEMAS ====================

class RoleSetup(BaseModel):
    role: Role
    name: str = Field(..., min_length=1, max_length=100)

class ExtendedProfileSetup(BaseModel):
    registration_id: str = Field(..., min_length=1)
    date_of_birth: int  # epoch ms
    gender: Gender
    user_class: UserClass

class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    school_name: Optional[str] = None
    blood_group: Optional[str] = None
    parents_name: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    date_of_birth: Optional[int] = None

class CreditAward(BaseModel):
    amount: float

class StudentProfileSubsetUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    user_class: Optional[UserClass] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None

# ==================== RESPONSE SCHEMAS ====================

class CreditBalance(BaseModel):
    credits: int
    total_tests_completed: int
    rank: str

class StudentSummary(BaseModel):
    id: str
    name: str
    email: str
    user_class: str
    credits: int
    rank: str
    total_tests_completed: int
    phone_number: str
    address: str
    last_login_at: Optional[int] = None

class LeaderboardEntry(BaseModel):
    position: int
    name: str
    credits: int
    tests_completed: int
    badge: str

class LeaderboardResponse(BaseModel):
    entries: List[LeaderboardEntry]

class AuditEntry(BaseModel):
    id: str
    actor_user_id: str
    role: str
    action: str
    target_type: str
    target_id: str
    metadata: dict = {}
    timestamp: datetime
