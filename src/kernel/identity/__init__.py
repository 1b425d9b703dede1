"""
Identity Core - Authentication and user management.
"""

from src.kernel.identity.password import PasswordHasher, verify_password, hash_password
from src.kernel.identity.jwt import (
    IssuedToken,
    TokenClaims,
    TokenService,
    get_token_service,
)
from src.kernel.identity.principal import Principal
from src.kernel.identity.identity_store import IdentityStore
from src.kernel.identity.identity_service import AuthResult, IdentityService, Profile
from src.kernel.identity.password_lifecycle import PasswordChanged, PasswordLifecycleService

__all__ = [
    "PasswordHasher",
    "verify_password",
    "hash_password",
    "IssuedToken",
    "TokenClaims",
    "TokenService",
    "get_token_service",
    "Principal",
    "IdentityStore",
    "AuthResult",
    "IdentityService",
    "Profile",
    "PasswordChanged",
    "PasswordLifecycleService",
]
