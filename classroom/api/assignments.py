from typing import List, Optional, Tuple, Union

from fastapi import APIRouter, Depends, HTTPException, status, Path
from sqlalchemy.ext.asyncio import AsyncSession

from classroom.database import get_db, utcnow
from classroom.middleware.authentication import (
    get_current_user, require_teacher, require_student, get_classroom_for_member, get_classroom_for_teacher
)
from classroom.models.assignments import Assignment, Submission, SubmissionStatus
from classroom.models.classrooms import Classroom
from classroom.models.users import User
from classroom.repositories.assignments import AssignmentRepository
from classroom.schemas.assignments import (
    AssignmentCreate, AssignmentInDB, AssignmentPublic, SubmissionCreate, SubmissionInDB,
    SubmissionForGrading, GradeRequest
)
from classroom.services.assignments import (
    AssignmentValidationError, prepare_questions, total_points, validate_answers, auto_score
)

router = APIRouter()

async def _load_assignment(
    assignment_id: int, user: User, db: AsyncSession
) -> Tuple[Assignment, Classroom]:
    assignment = await AssignmentRepository(db).get(assignment_id)
    if not assignment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Assignment not found"
        )
    classroom = await get_classroom_for_member(assignment.classroom_id, user, db)
    return assignment, classroom

def _present(assignment: Assignment, user: User) -> Union[AssignmentInDB, AssignmentPublic]:
    # Reference answers stay with the teacher
    if user.is_teacher:
        return AssignmentInDB.model_validate(assignment)
    return AssignmentPublic.model_validate(assignment)

# Assignment endpoints
@router.post(
    "/classrooms/{classroom_id}/assignments",
    response_model=AssignmentInDB,
    status_code=status.HTTP_201_CREATED
)
async def create_assignment(
    assignment_data: AssignmentCreate,
    classroom_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_teacher)
):
    """
    Create an assignment. Total points are the sum of the question points.
    """
    await get_classroom_for_teacher(classroom_id, current_user, db)

    try:
        questions = prepare_questions(q.model_dump(mode="json") for q in assignment_data.questions)
    except AssignmentValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    assignment = Assignment(
        classroom_id=classroom_id,
        title=assignment_data.title,
        description=assignment_data.description,
        due_date=assignment_data.due_date,
        questions=questions,
        total_points=total_points(questions),
    )

    return await AssignmentRepository(db).add(assignment)

@router.get("/classrooms/{classroom_id}/assignments", response_model=None)
async def list_assignments(
    classroom_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    await get_classroom_for_member(classroom_id, current_user, db)

    assignments = await AssignmentRepository(db).list_for_classroom(classroom_id)
    return [_present(assignment, current_user) for assignment in assignments]

@router.get("/assignments/{assignment_id}", response_model=None)
async def get_assignment(
    assignment_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    assignment, _ = await _load_assignment(assignment_id, current_user, db)
    return _present(assignment, current_user)

@router.delete("/assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_assignment(
    assignment_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_teacher)
):
    """
    Delete an assignment together with all of its submissions.
    """
    assignment, classroom = await _load_assignment(assignment_id, current_user, db)
    await get_classroom_for_teacher(classroom.id, current_user, db)

    await AssignmentRepository(db).delete(assignment)

# Submission endpoints
@router.post(
    "/assignments/{assignment_id}/submissions",
    response_model=SubmissionInDB,
    status_code=status.HTTP_201_CREATED
)
async def submit_assignment(
    submission_data: SubmissionCreate,
    assignment_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_student)
):
    """
    Submit answers. A resubmission replaces the earlier one and clears its grade.
    """
    assignment, classroom = await _load_assignment(assignment_id, current_user, db)
    if current_user.id not in classroom.student_ids:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only enrolled students can submit"
        )

    try:
        validate_answers(assignment.questions, submission_data.answers)
    except AssignmentValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    submission = Submission(
        assignment_id=assignment.id,
        student_id=current_user.id,
        student_name=current_user.name,
        answers=submission_data.answers,
        submitted_at=utcnow(),
        status=SubmissionStatus.PENDING.value,
    )

    return await AssignmentRepository(db).replace_submission(submission)

@router.get("/assignments/{assignment_id}/submissions", response_model=List[SubmissionForGrading])
async def list_submissions(
    assignment_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_teacher)
):
    """
    All submissions for grading, each with the score earned on auto-checkable questions.
    """
    assignment, classroom = await _load_assignment(assignment_id, current_user, db)
    await get_classroom_for_teacher(classroom.id, current_user, db)

    submissions = await AssignmentRepository(db).list_submissions(assignment.id)
    return [
        SubmissionForGrading(
            **SubmissionInDB.model_validate(submission).model_dump(),
            auto_score=auto_score(assignment.questions, submission.answers),
        )
        for submission in submissions
    ]

@router.get("/assignments/{assignment_id}/submissions/me", response_model=Optional[SubmissionInDB])
async def get_my_submission(
    assignment_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_student)
):
    assignment, _ = await _load_assignment(assignment_id, current_user, db)
    return await AssignmentRepository(db).get_submission_for_student(assignment.id, current_user.id)

@router.post("/submissions/{submission_id}/grade", response_model=SubmissionInDB)
async def grade_submission(
    grade_data: GradeRequest,
    submission_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_teacher)
):
    """
    Grade a submission. Feedback is optional and kept if omitted.
    """
    assignments = AssignmentRepository(db)
    submission = await assignments.get_submission(submission_id)
    if not submission:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Submission not found"
        )

    assignment, classroom = await _load_assignment(submission.assignment_id, current_user, db)
    await get_classroom_for_teacher(classroom.id, current_user, db)

    if grade_data.grade > assignment.total_points:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Grade cannot exceed {assignment.total_points:g} points"
        )

    submission.grade = grade_data.grade
    if grade_data.feedback:
        submission.feedback = grade_data.feedback
    submission.status = SubmissionStatus.GRADED.value

    return await assignments.save(submission)
