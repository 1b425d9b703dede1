"""
Authentication schemas.

Length bounds are enforced by the identity service so every bound failure
answers with the same 400 validation_error shape.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from src.kernel.models.user import UserRole


class LoginRequest(BaseModel):
    """Tenant login request."""

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    organization_id: uuid.UUID


class AdminLoginRequest(BaseModel):
    """Super admin login request."""

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RegisterRequest(BaseModel):
    """Organization member registration request."""

    username: str
    password: str
    email: EmailStr
    organization_id: uuid.UUID


class CreateAdminRequest(BaseModel):
    """Super admin creation request."""

    username: str
    password: str
    email: EmailStr


class ChangePasswordRequest(BaseModel):
    """Self-service password change request."""

    old_password: str
    new_password: str


class ResetPasswordRequest(BaseModel):
    """Admin-initiated password reset request."""

    user_id: uuid.UUID
    new_password: str


class LoginResponse(BaseModel):
    """Token plus the identity it was issued for."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user_id: uuid.UUID
    username: str
    role: UserRole
    organization_code: str


class TokenResponse(BaseModel):
    """Fresh token issued after a password change."""

    message: str = "Password changed successfully"
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class UserResponse(BaseModel):
    """User view. The password hash is never part of it."""

    id: uuid.UUID
    username: str
    email: str
    role: UserRole
    organization_id: uuid.UUID
    created_at: datetime

    class Config:
        from_attributes = True


class ProfileResponse(UserResponse):
    """Current user's profile."""

    organization_code: Optional[str] = None
