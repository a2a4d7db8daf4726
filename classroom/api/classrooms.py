import math
from datetime import timedelta
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status, Path
from sqlalchemy.ext.asyncio import AsyncSession

from classroom.config import settings
from classroom.database import get_db, utcnow
from classroom.middleware.authentication import (
    get_current_user, require_teacher, require_student, get_classroom_for_member, get_classroom_for_teacher
)
from classroom.models.classrooms import Classroom
from classroom.models.users import User
from classroom.repositories.classrooms import ClassroomRepository
from classroom.schemas.classrooms import (
    ClassroomCreate, ClassroomUpdate, ClassroomInDB, ClassroomWithStudents, ClassReminder
)

router = APIRouter()

@router.post("/classrooms", response_model=ClassroomInDB, status_code=status.HTTP_201_CREATED)
async def create_classroom(
    classroom_data: ClassroomCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_teacher)
):
    """
    Create a classroom owned by the current teacher. Its id doubles as the join code.
    """
    classroom = Classroom(teacher_id=current_user.id, **classroom_data.model_dump())
    return await ClassroomRepository(db).add(classroom)

@router.get("/classrooms", response_model=List[ClassroomInDB])
async def list_my_classrooms(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Classes the current user teaches (teachers) or has joined (students).
    """
    classrooms = ClassroomRepository(db)
    if current_user.is_teacher:
        return await classrooms.list_for_teacher(current_user.id)
    return await classrooms.list_for_student(current_user.id)

@router.get("/classrooms/{classroom_id}", response_model=ClassroomWithStudents)
async def get_classroom(
    classroom_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await get_classroom_for_member(classroom_id, current_user, db)

@router.patch("/classrooms/{classroom_id}", response_model=ClassroomInDB)
async def update_classroom(
    classroom_data: ClassroomUpdate,
    classroom_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_teacher)
):
    """
    Update class settings such as the attendance threshold or next class time.
    """
    classroom = await get_classroom_for_teacher(classroom_id, current_user, db)

    update_data = classroom_data.model_dump(exclude_unset=True)
    if "name" in update_data and update_data["name"] is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Classroom name cannot be empty"
        )

    return await ClassroomRepository(db).update(classroom, update_data)

@router.post("/classrooms/{classroom_id}/join", response_model=ClassroomInDB)
async def join_classroom(
    classroom_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_student)
):
    """
    Join a classroom by its code. Joining twice is harmless.
    """
    classrooms = ClassroomRepository(db)
    classroom = await classrooms.get(classroom_id)
    if not classroom:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Classroom not found"
        )

    await classrooms.add_student(classroom, current_user)
    return classroom

@router.get("/classrooms/{classroom_id}/reminder", response_model=ClassReminder)
async def get_class_reminder(
    classroom_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Whether the next class starts within the reminder window.
    """
    classroom = await get_classroom_for_member(classroom_id, current_user, db)

    reminder = ClassReminder(classroom_id=classroom.id, due=False, next_class_time=classroom.next_class_time)
    if classroom.next_class_time is None:
        return reminder

    diff = classroom.next_class_time - utcnow()
    if timedelta(0) < diff <= timedelta(minutes=settings.CLASS_REMINDER_MINUTES):
        reminder.due = True
        reminder.minutes_until_start = math.ceil(diff.total_seconds() / 60)

    return reminder
