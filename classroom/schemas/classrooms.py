from datetime import datetime, timezone
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator

from classroom.schemas.users import UserSummary


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as naive UTC; convert aware input on the way in."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# Classroom schemas
class ClassroomBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    semester: Optional[str] = None
    schedule: Optional[str] = None
    attendance_threshold: Optional[int] = Field(None, ge=0, le=100)
    next_class_time: Optional[datetime] = None

    @field_validator("next_class_time")
    @classmethod
    def naive_next_class_time(cls, value):
        return to_naive_utc(value)


class ClassroomCreate(ClassroomBase):
    pass


class ClassroomUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    semester: Optional[str] = None
    schedule: Optional[str] = None
    attendance_threshold: Optional[int] = Field(None, ge=0, le=100)
    next_class_time: Optional[datetime] = None

    @field_validator("next_class_time")
    @classmethod
    def naive_next_class_time(cls, value):
        return to_naive_utc(value)


class ClassroomInDB(ClassroomBase):
    id: int
    teacher_id: int
    teacher_name: str
    student_ids: List[int]
    created_at: datetime

    class Config:
        from_attributes = True


class ClassroomWithStudents(ClassroomInDB):
    students: List[UserSummary]

    class Config:
        from_attributes = True


class ClassReminder(BaseModel):
    classroom_id: int
    due: bool
    next_class_time: Optional[datetime] = None
    minutes_until_start: Optional[int] = None
