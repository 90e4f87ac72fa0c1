from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from smartbanana.models import Difficulty, UserClass

# ==================== REQUEST SCHEMAS ====================

class QuestionIn(BaseModel):
    # Shape rules (option count, answer index, points) are checked by the service
    # so that errors can name the offending question
    question: str
    options: List[str]
    correct_answer: int
    points: int

class TestCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str
    course_id: Optional[str] = None
    questions: List[QuestionIn] = []
    difficulty: Optional[Difficulty] = None

class TestUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    questions: Optional[List[QuestionIn]] = None
    is_published: Optional[bool] = None
    difficulty: Optional[Difficulty] = None

class TestSubmission(BaseModel):
    answers: List[int]

# ==================== RESPONSE SCHEMAS ====================

class QuestionOut(BaseModel):
    question: str
    options: List[str]
    correct_answer: Optional[int] = None  # hidden from students
    points: int

class TestResponse(BaseModel):
    id: str
    title: str
    description: str
    course_id: Optional[str] = None
    teacher_id: str
    target_class: UserClass
    questions: List[QuestionOut] = []
    total_points: int
    is_published: bool
    difficulty: Optional[Difficulty] = None
    teacher_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class SubmissionResult(BaseModel):
    score: int
    total_points: int
    credits_earned: int

class TestResultResponse(BaseModel):
    id: str
    test_id: str
    test_title: str
    score: int
    total_points: int
    correct_count: int
    credits_earned: int
    answers: List[int]
    completed_at: datetime
