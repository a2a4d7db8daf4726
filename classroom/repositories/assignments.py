from typing import List, Optional

from sqlalchemy import and_, delete, desc
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from classroom.models.assignments import Assignment, Submission


class AssignmentRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, assignment: Assignment) -> Assignment:
        self.db.add(assignment)
        await self.db.commit()
        await self.db.refresh(assignment)
        return assignment

    async def get(self, assignment_id: int) -> Optional[Assignment]:
        result = await self.db.execute(select(Assignment).where(Assignment.id == assignment_id))
        return result.scalars().first()

    async def list_for_classroom(self, classroom_id: int) -> List[Assignment]:
        result = await self.db.execute(
            select(Assignment)
            .where(Assignment.classroom_id == classroom_id)
            .order_by(desc(Assignment.created_at), desc(Assignment.id))
        )
        return list(result.scalars().all())

    async def delete(self, assignment: Assignment) -> None:
        await self.db.execute(delete(Submission).where(Submission.assignment_id == assignment.id))
        await self.db.delete(assignment)
        await self.db.commit()

    async def replace_submission(self, submission: Submission) -> Submission:
        """Store a submission, dropping any earlier one by the same student."""
        await self.db.execute(
            delete(Submission).where(
                and_(
                    Submission.assignment_id == submission.assignment_id,
                    Submission.student_id == submission.student_id,
                )
            )
        )
        self.db.add(submission)
        await self.db.commit()
        await self.db.refresh(submission)
        return submission

    async def get_submission(self, submission_id: int) -> Optional[Submission]:
        result = await self.db.execute(select(Submission).where(Submission.id == submission_id))
        return result.scalars().first()

    async def get_submission_for_student(self, assignment_id: int, student_id: int) -> Optional[Submission]:
        result = await self.db.execute(
            select(Submission).where(
                and_(
                    Submission.assignment_id == assignment_id,
                    Submission.student_id == student_id,
                )
            )
        )
        return result.scalars().first()

    async def list_submissions(self, assignment_id: int) -> List[Submission]:
        result = await self.db.execute(
            select(Submission)
            .where(Submission.assignment_id == assignment_id)
            .order_by(desc(Submission.submitted_at), desc(Submission.id))
        )
        return list(result.scalars().all())

    async def save(self, submission: Submission) -> Submission:
        await self.db.commit()
        await self.db.refresh(submission)
        return submission
