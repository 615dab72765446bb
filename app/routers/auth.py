"""
Account endpoints.

Routes
------
POST /api/auth/signup  — create account            → AuthResponse (201)
POST /api/auth/signin  — exchange credentials      → AuthResponse
GET  /api/auth/user    — current user (protected)  → UserResponse
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import get_current_user
from app.models.database_models import User
from app.models.schemas import AuthResponse, SigninRequest, SignupRequest, UserResponse
from app.utils.security import create_access_token, get_password_hash, verify_password

logger = logging.getLogger(__name__)

router = APIRouter()


def _auth_response(user: User) -> AuthResponse:
    return AuthResponse(
        token=create_access_token(user.id),
        user=UserResponse(id=user.id, name=user.name, email=user.email),
    )


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def signup(body: SignupRequest, db: AsyncSession = Depends(get_db)) -> AuthResponse:
    """Create an account and return a token for it."""
    email = body.email.lower()
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User already exists",
        )

    user = User(
        name=body.name.strip(),
        email=email,
        password_hash=get_password_hash(body.password),
    )
    db.add(user)
    await db.flush()

    logger.info("Created user id=%s email=%s", user.id, user.email)
    return _auth_response(user)


@router.post("/signin", response_model=AuthResponse)
async def signin(body: SigninRequest, db: AsyncSession = Depends(get_db)) -> AuthResponse:
    """Verify credentials. Unknown email and wrong password look the same to the caller."""
    result = await db.execute(select(User).where(User.email == body.email.lower()))
    user = result.scalar_one_or_none()

    if user is None or not verify_password(body.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid credentials",
        )

    return _auth_response(user)


@router.get("/user", response_model=UserResponse)
async def get_user(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse(id=user.id, name=user.name, email=user.email)
