"""
Error taxonomy for the identity kernel.

Every error carries a stable machine-readable ``code`` and a human message.
The transport layer maps codes to HTTP statuses; nothing in the kernel knows
about HTTP.
"""

from typing import Optional


class IdentityError(Exception):
    """Base class for all kernel errors."""

    code: str = "internal"
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        self.message = message or self.default_message
        self.field = field
        super().__init__(self.message)

    def to_dict(self) -> dict:
        data = {"detail": self.message, "code": self.code}
        if self.field:
            data["field"] = self.field
        return data


class ValidationError(IdentityError):
    """Malformed or missing input, raised before touching the store."""

    code = "validation_error"
    default_message = "Invalid input"


class InvalidCredentialsError(IdentityError):
    """Collapsed login failure. Never says which part was wrong."""

    code = "invalid_credentials"
    default_message = "Invalid username or password"


class UnauthorizedError(IdentityError):
    """Request is not authenticated."""

    code = "unauthorized"
    default_message = "Not authenticated"


class InvalidTokenError(UnauthorizedError):
    """Bearer token failed verification (expired, tampered or malformed)."""

    default_message = "Invalid or expired token"


class InvalidOldPasswordError(IdentityError):
    code = "invalid_old_password"
    default_message = "Current password is incorrect"


class ForbiddenError(IdentityError):
    """Authorization denial. The message never names the missing permission."""

    code = "forbidden"
    default_message = "Insufficient permissions"


class NotFoundError(IdentityError):
    code = "not_found"
    default_message = "Resource not found"


class ConflictError(IdentityError):
    """Uniqueness or referential rule violated."""

    code = "conflict"
    default_message = "Resource conflicts with existing data"


class InternalError(IdentityError):
    """Hashing, signing or store failure."""

    code = "internal"
    default_message = "Internal server error"
