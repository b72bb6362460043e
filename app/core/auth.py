"""
Authentication dependencies
Resolves the bearer token into a User and an AuthSession (user id + role)
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_async_session
from app.core.error_handling import AuthFailed
from app.core.security import verify_password, verify_token, create_access_token, create_refresh_token
from app.models import User, UserRole, UserRoleAssignment

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthSession:
    """Authenticated actor passed explicitly into services"""
    user_id: int
    role: Optional[UserRole] = None

    @property
    def is_doctor(self) -> bool:
        return self.role == UserRole.DOCTOR

    @property
    def is_patient(self) -> bool:
        return self.role == UserRole.PATIENT


async def lookup_role(db: AsyncSession, user_id: int) -> Optional[UserRole]:
    """Return the user's role, or None when no role has been chosen yet"""
    result = await db.execute(
        select(UserRoleAssignment.role).where(UserRoleAssignment.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def authenticate_user(db: AsyncSession, email: str, password: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email.lower()))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def issue_tokens(user: User) -> dict:
    token_data = {"sub": str(user.id), "email": user.email}
    return {
        "access_token": create_access_token(data=token_data),
        "refresh_token": create_refresh_token(data=token_data),
    }


async def user_from_token(db: AsyncSession, token: str, expected_type: str = "access") -> User:
    payload = verify_token(token, expected_type=expected_type)
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise AuthFailed("Token has no subject")
    
    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthFailed("Invalid token or user not found")
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_async_session)
) -> User:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthFailed("Missing authorization header")
    return await user_from_token(db, credentials.credentials)


async def get_auth_session(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
) -> AuthSession:
    role = await lookup_role(db, current_user.id)
    return AuthSession(user_id=current_user.id, role=role)
