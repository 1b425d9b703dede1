"""
Authentication endpoints.
"""

from fastapi import APIRouter, Request, status

from src.api.deps import CurrentPrincipal, DbSession, get_client_ip, get_user_agent
from src.kernel.identity.identity_service import AuthResult, IdentityService
from src.kernel.identity.password_lifecycle import PasswordLifecycleService
from src.schemas.auth import (
    AdminLoginRequest,
    ChangePasswordRequest,
    CreateAdminRequest,
    LoginRequest,
    LoginResponse,
    ProfileResponse,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
    UserResponse,
)
from src.schemas.common import SuccessResponse

router = APIRouter()


def _login_response(result: AuthResult) -> LoginResponse:
    return LoginResponse(
        access_token=result.token.access_token,
        token_type=result.token.token_type,
        expires_in=result.token.expires_in,
        user_id=result.user.id,
        username=result.user.username,
        role=result.user.role_value,
        organization_code=result.organization.code,
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    request: Request,
    data: LoginRequest,
    db: DbSession,
):
    """
    Authenticate a user inside an organization and return a bearer token.
    """
    result = await IdentityService(db).login(
        username=data.username,
        password=data.password,
        organization_id=data.organization_id,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    return _login_response(result)


@router.post("/admin/login", response_model=LoginResponse)
async def admin_login(
    request: Request,
    data: AdminLoginRequest,
    db: DbSession,
):
    """Authenticate a super admin against the system organization."""
    result = await IdentityService(db).admin_login(
        username=data.username,
        password=data.password,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    return _login_response(result)


@router.post("/register", response_model=LoginResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: Request,
    data: RegisterRequest,
    db: DbSession,
):
    """
    Register a new organization member.

    Registration doubles as login: the response carries a token.
    """
    result = await IdentityService(db).register(
        username=data.username,
        password=data.password,
        email=data.email,
        organization_id=data.organization_id,
        ip_address=get_client_ip(request),
    )
    return _login_response(result)


@router.get("/me", response_model=ProfileResponse)
async def get_current_user_profile(principal: CurrentPrincipal, db: DbSession):
    """Get current user's profile."""
    profile = await IdentityService(db).get_profile(principal)
    response = ProfileResponse.model_validate(profile.user)
    response.organization_code = profile.organization.code if profile.organization else None
    return response


@router.post("/change-password", response_model=TokenResponse)
async def change_password(
    request: Request,
    data: ChangePasswordRequest,
    principal: CurrentPrincipal,
    db: DbSession,
):
    """
    Change the caller's own password.

    Tokens issued before the change stay valid until they expire; the
    response carries a fresh one.
    """
    changed = await PasswordLifecycleService(db).change_password(
        principal,
        old_password=data.old_password,
        new_password=data.new_password,
        ip_address=get_client_ip(request),
    )
    return TokenResponse(
        access_token=changed.token.access_token,
        token_type=changed.token.token_type,
        expires_in=changed.token.expires_in,
    )


@router.post("/reset-password", response_model=SuccessResponse)
async def reset_password(
    request: Request,
    data: ResetPasswordRequest,
    principal: CurrentPrincipal,
    db: DbSession,
):
    """Reset another user's password (super admin, or org admin for own members)."""
    await PasswordLifecycleService(db).reset_password(
        principal,
        target_user_id=data.user_id,
        new_password=data.new_password,
        ip_address=get_client_ip(request),
    )
    return SuccessResponse(message="Password reset successfully")


@router.post("/create-admin", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_admin(
    request: Request,
    data: CreateAdminRequest,
    principal: CurrentPrincipal,
    db: DbSession,
):
    """Create another super admin. Super admins only."""
    admin = await IdentityService(db).create_admin(
        principal,
        username=data.username,
        password=data.password,
        email=data.email,
        ip_address=get_client_ip(request),
    )
    return UserResponse.model_validate(admin)
