"""
JWT token management for authentication.
"""

import uuid
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel, ValidationError as PydanticValidationError

from src.config import Settings, get_settings
from src.kernel.errors import InternalError, InvalidTokenError
from src.kernel.models.user import UserRole
from src.logging_config import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"


class TokenClaims(BaseModel):
    """Verified access token payload."""

    sub: uuid.UUID  # User ID
    username: str
    role: UserRole
    org: uuid.UUID  # Organization ID
    iat: datetime
    nbf: datetime
    exp: datetime
    jti: str

    @property
    def user_id(self) -> uuid.UUID:
        return self.sub

    @property
    def organization_id(self) -> uuid.UUID:
        return self.org


class IssuedToken(BaseModel):
    """A freshly signed access token."""

    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    expires_in: int  # Seconds until the token expires


class TokenService:
    """
    Signs and verifies bearer tokens carrying identity, role and tenant.

    The secret is a constructor argument; one instance built from settings
    is shared for the process lifetime (see get_token_service).
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_token_expire_minutes: int = 1440,
    ):
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_token_ttl = timedelta(minutes=access_token_expire_minutes)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            secret_key=settings.secret_key,
            algorithm=settings.algorithm,
            access_token_expire_minutes=settings.access_token_expire_minutes,
        )

    def issue(
        self,
        user_id: uuid.UUID,
        username: str,
        role: str,
        organization_id: uuid.UUID,
        expires_delta: Optional[timedelta] = None,
    ) -> IssuedToken:
        """
        Create a new access token.

        Args:
            user_id: User's unique identifier
            username: User's login name
            role: User's role
            organization_id: Organization the user belongs to
            expires_delta: Optional custom lifetime (defaults to the configured TTL)

        Returns:
            IssuedToken with the encoded token and its expiry
        """
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta if expires_delta is not None else self.access_token_ttl)

        payload = {
            "sub": str(user_id),
            "username": username,
            "role": role.value if hasattr(role, "value") else role,
            "org": str(organization_id),
            "iat": now,
            "nbf": now,
            "exp": expire,
            "jti": str(uuid.uuid4()),
            "type": ACCESS_TOKEN_TYPE,
        }

        try:
            token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        except JWTError as exc:
            raise InternalError("Token signing failed") from exc

        return IssuedToken(
            access_token=token,
            expires_at=expire,
            expires_in=max(int((expire - now).total_seconds()), 0),
        )

    def verify(self, token: str) -> TokenClaims:
        """
        Verify and decode an access token.

        Args:
            token: JWT access token

        Returns:
            The embedded claims, unchanged

        Raises:
            InvalidTokenError: for any failure; the cause is only logged
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
            )
        except ExpiredSignatureError:
            logger.debug("Rejected token: expired")
            raise InvalidTokenError()
        except JWTError as exc:
            logger.debug("Rejected token: %s", exc)
            raise InvalidTokenError()

        if payload.get("type") != ACCESS_TOKEN_TYPE:
            logger.debug("Rejected token: wrong type %r", payload.get("type"))
            raise InvalidTokenError()

        try:
            return TokenClaims(
                sub=payload["sub"],
                username=payload["username"],
                role=payload["role"],
                org=payload["org"],
                iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                nbf=datetime.fromtimestamp(payload["nbf"], tz=timezone.utc),
                exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                jti=payload["jti"],
            )
        except (KeyError, TypeError, PydanticValidationError) as exc:
            logger.debug("Rejected token: malformed claims (%s)", exc)
            raise InvalidTokenError()


@lru_cache
def get_token_service() -> TokenService:
    """Token service built from settings, shared for the process lifetime."""
    return TokenService.from_settings(get_settings())
