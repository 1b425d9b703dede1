"""
FastAPI dependencies for authentication, authorization, and database sessions.
"""

from typing import Annotated, AsyncGenerator, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import async_session_maker
from src.kernel.errors import ForbiddenError, UnauthorizedError
from src.kernel.identity.identity_service import IdentityService
from src.kernel.identity.principal import Principal
from src.logging_config import user_id_var


# Security scheme
security = HTTPBearer(auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that yields database sessions; commits on success."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_current_principal(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: DbSession,
) -> Principal:
    """
    Resolve the bearer token into a Principal or raise 401.

    The user row is reloaded so deleted accounts lose access immediately.
    """
    if not credentials or not credentials.credentials:
        raise UnauthorizedError()

    principal = await IdentityService(db).authenticate_token(credentials.credentials)

    request.state.user_id = str(principal.user_id)
    user_id_var.set(str(principal.user_id))
    return principal


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


async def require_super_admin(principal: CurrentPrincipal) -> Principal:
    """Require the current caller to be a super admin."""
    if not principal.is_super_admin:
        raise ForbiddenError()
    return principal


SuperAdmin = Annotated[Principal, Depends(require_super_admin)]


def get_request_id(request: Request) -> Optional[str]:
    """Get request correlation ID (set by RequestIdMiddleware)."""
    return getattr(request.state, "request_id", None)


def get_client_ip(request: Request) -> Optional[str]:
    """Extract client IP from request."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_user_agent(request: Request) -> Optional[str]:
    """Extract user agent from request."""
    return request.headers.get("User-Agent")
