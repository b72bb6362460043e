"""
Authentication schemas
"""
import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field

from app.models import UserRole


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: str = Field(..., min_length=1, max_length=200)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class RoleRequest(BaseModel):
    role: UserRole


class UserResponse(BaseModel):
    id: int
    email: str
    full_name: Optional[str] = None
    role: Optional[UserRole] = None
    created_at: datetime.datetime


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class LoginResponse(TokenResponse):
    user: UserResponse
