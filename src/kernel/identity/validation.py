"""
Input rules for credentials and tenant codes.

Checked before any store access. Bounds come from settings.
"""

from typing import Optional

from email_validator import EmailNotValidError, validate_email

from src.config import Settings, get_settings
from src.kernel.errors import ValidationError

# bcrypt ignores everything past this many bytes
PASSWORD_MAX_BYTES = 72

ORGANIZATION_CODE_MAX_LENGTH = 32
ORGANIZATION_DESCRIPTION_MAX_LENGTH = 256


def normalize_username(username: Optional[str], settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    value = (username or "").strip()
    if not settings.username_min_length <= len(value) <= settings.username_max_length:
        raise ValidationError(
            f"Username must be {settings.username_min_length}-"
            f"{settings.username_max_length} characters",
            field="username",
        )
    return value


def check_password(password: Optional[str], settings: Optional[Settings] = None, field: str = "password") -> str:
    """Length check only; passwords are never stripped or altered."""
    settings = settings or get_settings()
    value = password or ""
    if not settings.password_min_length <= len(value) <= settings.password_max_length:
        raise ValidationError(
            f"Password must be {settings.password_min_length}-"
            f"{settings.password_max_length} characters",
            field=field,
        )
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValidationError(
            f"Password must be at most {PASSWORD_MAX_BYTES} bytes when UTF-8 encoded",
            field=field,
        )
    return value


def normalize_email(email: Optional[str]) -> str:
    value = (email or "").strip().lower()
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        raise ValidationError("Invalid email address", field="email")
    return value


def normalize_organization_code(code: Optional[str]) -> str:
    value = (code or "").strip()
    if not value or len(value) > ORGANIZATION_CODE_MAX_LENGTH:
        raise ValidationError(
            f"Organization code must be 1-{ORGANIZATION_CODE_MAX_LENGTH} characters",
            field="code",
        )
    return value


def normalize_description(description: Optional[str]) -> str:
    value = (description or "").strip()
    if len(value) > ORGANIZATION_DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            f"Description must be at most {ORGANIZATION_DESCRIPTION_MAX_LENGTH} characters",
            field="description",
        )
    return value
