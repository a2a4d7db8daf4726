from datetime import datetime
from typing import Optional, List, Dict
from pydantic import BaseModel, Field, field_validator
from enum import Enum

from classroom.schemas.classrooms import to_naive_utc


class QuestionTypeEnum(str, Enum):
    mcq = "MCQ"
    short_answer = "SHORT_ANSWER"


class SubmissionStatusEnum(str, Enum):
    pending = "PENDING"
    graded = "GRADED"


# Question schemas
class QuestionPublic(BaseModel):
    id: Optional[str] = None
    type: QuestionTypeEnum
    text: str
    points: float = Field(..., ge=0)
    options: Optional[List[str]] = None


class Question(QuestionPublic):
    correct_answer: Optional[str] = None


# Assignment schemas
class AssignmentBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    due_date: Optional[datetime] = None

    @field_validator("due_date")
    @classmethod
    def naive_due_date(cls, value):
        return to_naive_utc(value)


class AssignmentCreate(AssignmentBase):
    questions: List[Question] = []


class AssignmentInDB(AssignmentBase):
    id: int
    classroom_id: int
    questions: List[Question]
    total_points: float
    created_at: datetime

    class Config:
        from_attributes = True


class AssignmentPublic(AssignmentBase):
    id: int
    classroom_id: int
    questions: List[QuestionPublic]
    total_points: float
    created_at: datetime

    class Config:
        from_attributes = True


# Submission schemas
class SubmissionCreate(BaseModel):
    answers: Dict[str, str]


class SubmissionInDB(BaseModel):
    id: int
    assignment_id: int
    student_id: int
    student_name: str
    answers: Dict[str, str]
    submitted_at: datetime
    grade: Optional[float] = None
    feedback: Optional[str] = None
    status: SubmissionStatusEnum

    class Config:
        from_attributes = True


class SubmissionForGrading(SubmissionInDB):
    auto_score: float


class GradeRequest(BaseModel):
    grade: float = Field(..., ge=0)
    feedback: Optional[str] = None
