from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from classroom.config import settings
from classroom.database import get_db
from classroom.middleware.authentication import get_current_user
from classroom.models.users import User
from classroom.repositories.users import UserRepository
from classroom.schemas.users import UserCreate, UserInDB, Token, LoginRequest
from classroom.services.auth import create_access_token, authenticate_user, get_password_hash

router = APIRouter()

@router.post("/auth/register", response_model=UserInDB, status_code=status.HTTP_201_CREATED)
async def register_user(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db)
):
    """
    Register a new teacher or student.
    """
    users = UserRepository(db)

    # Check if email already exists
    if await users.get_by_email(user_data.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User already exists"
        )

    db_user = User(
        email=user_data.email,
        name=user_data.name,
        role=user_data.role.value,
        mobile=user_data.mobile,
        course=user_data.course,
        branch=user_data.branch,
        semester=user_data.semester,
        id_card_details=user_data.id_card_details,
        hashed_password=get_password_hash(user_data.password),
    )

    return await users.add(db_user)

@router.post("/auth/login", response_model=Token)
async def login_for_access_token(
    form_data: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Authenticate a user and return an access token.
    """
    user = await authenticate_user(form_data.email, form_data.password, UserRepository(db))
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(
        data={"sub": str(user.id), "role": user.role},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )

    return {
        "access_token": access_token,
        "token_type": "bearer",
        "user_id": user.id,
        "role": user.role
    }

@router.get("/auth/me", response_model=UserInDB)
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """
    Get information about the currently authenticated user.
    """
    return current_user
