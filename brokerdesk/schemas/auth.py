"""Pydantic schemas for authentication."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from brokerdesk.models import UserRole
from brokerdesk.schemas.base import BaseResponse


class LoginRequest(BaseModel):
    """Schema for user login."""

    email: EmailStr
    password: str


class UserCreate(BaseModel):
    """Schema for creating a staff account (admin only)."""

    email: EmailStr
    password: Annotated[str, Field(min_length=8, max_length=128)]
    first_name: Annotated[str, Field(min_length=1, max_length=100)]
    last_name: Annotated[str, Field(min_length=1, max_length=100)]
    role: UserRole = UserRole.SALES
    phone_number: Annotated[str | None, Field(max_length=20)] = None


class UserResponse(BaseResponse):
    id: UUID
    email: str
    first_name: str
    last_name: str
    role: UserRole
    phone_number: str | None = None
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime


class AuthResponse(BaseModel):
    """Schema for auth response - returns user info and JWT token."""

    access_token: str
    token_type: str = "bearer"
    user: UserResponse
