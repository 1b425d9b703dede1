"""
Pydantic schemas for API request/response validation.
"""

from src.schemas.auth import (
    LoginRequest,
    AdminLoginRequest,
    RegisterRequest,
    CreateAdminRequest,
    ChangePasswordRequest,
    ResetPasswordRequest,
    LoginResponse,
    TokenResponse,
    UserResponse,
    ProfileResponse,
)
from src.schemas.organization import (
    OrganizationCreate,
    OrganizationUpdate,
    OrgAdminCreate,
    MemberResponse,
    OrganizationResponse,
    OrganizationListItem,
    OrganizationDetailResponse,
)
from src.schemas.common import ErrorResponse, SuccessResponse, HealthResponse

__all__ = [
    # Auth
    "LoginRequest",
    "AdminLoginRequest",
    "RegisterRequest",
    "CreateAdminRequest",
    "ChangePasswordRequest",
    "ResetPasswordRequest",
    "LoginResponse",
    "TokenResponse",
    "UserResponse",
    "ProfileResponse",
    # Organizations
    "OrganizationCreate",
    "OrganizationUpdate",
    "OrgAdminCreate",
    "MemberResponse",
    "OrganizationResponse",
    "OrganizationListItem",
    "OrganizationDetailResponse",
    # Common
    "ErrorResponse",
    "SuccessResponse",
    "HealthResponse",
]
