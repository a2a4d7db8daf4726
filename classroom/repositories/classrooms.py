from typing import Any, Dict, List, Optional

from sqlalchemy import desc
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from classroom.models.classrooms import Classroom, ClassroomStudent
from classroom.models.users import User


class ClassroomRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _reload(self, classroom_id: int) -> Classroom:
        # populate_existing so teacher and students are re-read after a write
        result = await self.db.execute(
            select(Classroom)
            .where(Classroom.id == classroom_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().one()

    async def add(self, classroom: Classroom) -> Classroom:
        self.db.add(classroom)
        await self.db.commit()
        return await self._reload(classroom.id)

    async def get(self, classroom_id: int) -> Optional[Classroom]:
        result = await self.db.execute(select(Classroom).where(Classroom.id == classroom_id))
        return result.scalars().first()

    async def update(self, classroom: Classroom, changes: Dict[str, Any]) -> Classroom:
        for key, value in changes.items():
            setattr(classroom, key, value)
        await self.db.commit()
        return await self._reload(classroom.id)

    async def add_student(self, classroom: Classroom, student: User) -> bool:
        """Enroll a student. Returns False when they were already enrolled."""
        if student.id in classroom.student_ids:
            return False
        self.db.add(ClassroomStudent(classroom_id=classroom.id, student_id=student.id))
        await self.db.commit()
        await self._reload(classroom.id)
        return True

    async def list_for_teacher(self, teacher_id: int) -> List[Classroom]:
        result = await self.db.execute(
            select(Classroom).where(Classroom.teacher_id == teacher_id).order_by(desc(Classroom.created_at))
        )
        return list(result.scalars().all())

    async def list_for_student(self, student_id: int) -> List[Classroom]:
        result = await self.db.execute(
            select(Classroom)
            .join(ClassroomStudent, ClassroomStudent.classroom_id == Classroom.id)
            .where(ClassroomStudent.student_id == student_id)
            .order_by(desc(ClassroomStudent.joined_at))
        )
        return list(result.scalars().all())

