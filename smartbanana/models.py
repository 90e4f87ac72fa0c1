from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum

# ==================== ENUMS ====================

class Role(str, Enum):
    TEACHER = "teacher"
    STUDENT = "student"

class UserClass(str, Enum):
    CLASS_6 = "Class 6"
    CLASS_7 = "Class 7"
    CLASS_8 = "Class 8"
    CLASS_9 = "Class 9"
    CLASS_10 = "Class 10"
    CLASS_11 = "Class 11"
    CLASS_12 = "Class 12"

class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHERS = "Others"

class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

class SubjectType(str, Enum):
    DEFAULT = "default"
    CUSTOM = "custom"

class RankLabel(str, Enum):
    BANANA_SPROUT = "Banana Sprout"
    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"
    DIAMOND = "Diamond"
    PLATINUM = "Platinum"

# ==================== DATABASE MODELS ====================

class Document(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

class Course(Document):
    title: str
    description: str
    teacher_id: str
    target_class: UserClass
    is_published: bool = False
    enrolled_students: List[str] = []
    total_lessons: int = 0
    subject_type: SubjectType = SubjectType.CUSTOM
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

class Chapter(Document):
    course_id: str
    title: str
    content: str
    image_url: Optional[str] = None
    order: int
    created_at: datetime = Field(default_factory=datetime.utcnow)

class Question(Document):
    question: str
    options: List[str]
    correct_answer: int
    points: int

class Test(Document):
    title: str
    description: str
    course_id: Optional[str] = None
    teacher_id: str
    target_class: UserClass
    questions: List[Question] = []
    total_points: int = 0
    is_published: bool = False
    difficulty: Optional[Difficulty] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

class Enrollment(Document):
    """progress is derived from chapter completions, never written by callers"""
    course_id: str
    student_id: str
    progress: int = 0
    enrolled_at: datetime = Field(default_factory=datetime.utcnow)
    last_accessed: Optional[datetime] = None

class ChapterCompletion(Document):
    chapter_id: str
    course_id: str
    student_id: str
    completed_at: datetime = Field(default_factory=datetime.utcnow)

class TestResult(Document):
    test_id: str
    student_id: str
    score: int
    total_points: int
    correct_count: int
    credits_earned: int
    answers: List[int]
    completed_at: datetime = Field(default_factory=datetime.utcnow)

class Announcement(Document):
    title: str
    content: str
    author_id: str
    is_global: bool = False  # always False; global scope is disabled
    course_id: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    target_class: UserClass
    schedule_at: Optional[int] = None  # epoch ms
    created_at: datetime = Field(default_factory=datetime.utcnow)

class AuditLog(Document):
    actor_user_id: str
    role: str  # teacher, student
    action: str  # create_course, delete_test, delete_student, ...
    target_type: str  # course, chapter, test, announcement, user
    target_id: str
    metadata: dict = {}
    timestamp: datetime = Field(default_factory=datetime.utcnow)
