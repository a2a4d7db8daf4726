from typing import List

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from classroom.config import settings
from classroom.database import get_db
from classroom.models.classrooms import Classroom
from classroom.models.users import User, UserRole
from classroom.repositories.classrooms import ClassroomRepository
from classroom.repositories.users import UserRepository

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Get the current authenticated user from the provided JWT token.

    Args:
        token: The JWT token
        db: Database session

    Returns:
        The authenticated user

    Raises:
        HTTPException: If token is invalid or user not found
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        # Decode the JWT token; jose rejects expired tokens itself
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )

        user_id: str = payload.get("sub")
        if user_id is None:
            raise credentials_exception

    except ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except JWTError:
        raise credentials_exception

    user = await UserRepository(db).get(int(user_id))

    if user is None:
        raise credentials_exception

    return user

class RoleChecker:
    """
    Dependency that only lets users with one of the allowed roles through.
    """
    def __init__(self, allowed_roles: List[UserRole]):
        self.allowed_roles = [role.value for role in allowed_roles]

    async def __call__(self, user: User = Depends(get_current_user)) -> User:
        if user.role not in self.allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"This action requires one of the roles: {', '.join(self.allowed_roles)}"
            )
        return user

require_teacher = RoleChecker([UserRole.TEACHER])
require_student = RoleChecker([UserRole.STUDENT])

async def get_classroom_for_member(classroom_id: int, user: User, db: AsyncSession) -> Classroom:
    """
    Load a classroom the user teaches or is enrolled in.

    Raises:
        HTTPException: 404 if the classroom does not exist, 403 if the user is not a member
    """
    classroom = await ClassroomRepository(db).get(classroom_id)
    if not classroom:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Classroom not found"
        )

    if not classroom.has_member(user.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not a member of this classroom"
        )

    return classroom

async def get_classroom_for_teacher(classroom_id: int, user: User, db: AsyncSession) -> Classroom:
    """Load a classroom and make sure the user is the teacher who owns it."""
    classroom = await get_classroom_for_member(classroom_id, user, db)
    if classroom.teacher_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the classroom's teacher can do this"
        )
    return classroom
