"""
Authentication Endpoints
Handles registration, login, token refresh and role selection
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_async_session
from app.core.auth import (
    authenticate_user,
    get_current_user,
    issue_tokens,
    lookup_role,
    user_from_token,
)
from app.core.security import hash_password
from app.models import Profile, User, UserRoleAssignment
from app.schemas.auth import (
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    RegisterRequest,
    RoleRequest,
    TokenResponse,
    UserResponse,
)
from config import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


async def build_user_response(db: AsyncSession, user: User) -> UserResponse:
    profile = await db.get(Profile, user.id)
    return UserResponse(
        id=user.id,
        email=user.email,
        full_name=profile.full_name if profile else None,
        role=await lookup_role(db, user.id),
        created_at=user.created_at,
    )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: RegisterRequest,
    db: AsyncSession = Depends(get_async_session)
):
    """
    Create a user account and its profile. The role is chosen afterwards
    through POST /auth/role.
    """
    email = user_data.email.lower()
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered"
        )
    
    user = User(email=email, hashed_password=hash_password(user_data.password))
    db.add(user)
    await db.flush()
    db.add(Profile(id=user.id, email=email, full_name=user_data.full_name))
    await db.commit()
    await db.refresh(user)
    
    logger.info(f"Registered user {user.id}")
    return await build_user_response(db, user)


@router.post("/login", response_model=LoginResponse)
async def login(
    login_data: LoginRequest,
    db: AsyncSession = Depends(get_async_session)
):
    """Authenticate with email and password; returns access and refresh tokens"""
    user = await authenticate_user(db, login_data.email, login_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    
    return LoginResponse(
        **issue_tokens(user),
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=await build_user_response(db, user),
    )


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    body: RefreshRequest,
    db: AsyncSession = Depends(get_async_session)
):
    user = await user_from_token(db, body.refresh_token, expected_type="refresh")
    return TokenResponse(
        **issue_tokens(user),
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    return await build_user_response(db, current_user)


@router.post("/role", response_model=UserResponse)
async def set_role(
    body: RoleRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    """
    Choose the account's role. A role can only be set once; if one already
    exists it is returned unchanged.
    """
    existing = await lookup_role(db, current_user.id)
    if existing is None:
        db.add(UserRoleAssignment(user_id=current_user.id, role=body.role))
        await db.commit()
        logger.info(f"User {current_user.id} selected role {body.role.value}")
    return await build_user_response(db, current_user)
