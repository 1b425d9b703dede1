"""
Identity service: login, registration, admin creation and bootstrap.
"""

import asyncio
import secrets
import uuid
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings, get_settings
from src.kernel.errors import (
    ConflictError,
    InternalError,
    InvalidCredentialsError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from src.kernel.events.event_store import EventStore
from src.kernel.identity.identity_store import IdentityStore
from src.kernel.identity.jwt import IssuedToken, TokenService, get_token_service
from src.kernel.identity.password import PasswordHasher, get_password_hasher
from src.kernel.identity.principal import Principal
from src.kernel.identity.validation import check_password, normalize_email, normalize_username
from src.kernel.models.event_log import EventType
from src.kernel.models.organization import Organization
from src.kernel.models.user import User, UserRole
from src.kernel.permissions.permission_service import Action, PermissionService
from src.logging_config import get_logger

logger = get_logger(__name__)

# Roles accepted by the tenant login endpoint
LOGIN_ROLES = (UserRole.ORG_MEMBER, UserRole.ORG_ADMIN, UserRole.SUPER_ADMIN)


@lru_cache(maxsize=4)
def _timing_digest(rounds: int) -> str:
    """Throwaway digest verified when no user matched, so timing stays flat."""
    return PasswordHasher(rounds).hash(secrets.token_urlsafe(16))


@dataclass
class AuthResult:
    """Outcome of a successful login or registration."""

    user: User
    organization: Organization
    token: IssuedToken


@dataclass
class Profile:
    user: User
    organization: Optional[Organization]


class IdentityService:
    """
    Service for user identity operations.

    Handles login (tenant and admin), registration, super admin and org
    admin creation, and the one-time system bootstrap.
    """

    def __init__(
        self,
        session: AsyncSession,
        token_service: Optional[TokenService] = None,
        hasher: Optional[PasswordHasher] = None,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.store = IdentityStore(session, self.settings)
        self.token_service = token_service or get_token_service()
        self.hasher = hasher or get_password_hasher()
        self.event_store = EventStore(session)
        self.permissions = PermissionService()

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def login(
        self,
        username: str,
        password: str,
        organization_id: uuid.UUID,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuthResult:
        """
        Authenticate a user inside one organization and issue a token.

        Unknown organization, unknown user and wrong password all raise the
        same InvalidCredentialsError.
        """
        organization = await self.store.find_org_by_id(organization_id)
        user = None
        if organization is not None:
            user = await self.store.find_user_by_username_org_role(
                (username or "").strip(), organization.id, LOGIN_ROLES
            )
        return await self._complete_login(user, organization, password, ip_address, user_agent)

    async def admin_login(
        self,
        username: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuthResult:
        """Authenticate a super admin against the system organization."""
        system_org = await self.store.get_system_organization()
        if system_org is None:
            logger.error("Admin login attempted before bootstrap: system organization missing")
            raise InternalError("System organization not found")

        user = await self.store.find_user_by_username_org_role(
            (username or "").strip(), system_org.id, (UserRole.SUPER_ADMIN,)
        )
        return await self._complete_login(user, system_org, password, ip_address, user_agent)

    async def _complete_login(
        self,
        user: Optional[User],
        organization: Optional[Organization],
        password: str,
        ip_address: Optional[str],
        user_agent: Optional[str],
    ) -> AuthResult:
        if user is None or organization is None:
            digest = await asyncio.to_thread(_timing_digest, self.hasher.rounds)
            await self._verify(password, digest)
            logger.info("Login failed", extra={"reason": "no_match", "ip_address": ip_address})
            raise InvalidCredentialsError()

        if not await self._verify(password, user.password_hash):
            logger.info("Login failed", extra={"reason": "password", "ip_address": ip_address})
            raise InvalidCredentialsError()

        token = self.issue_token(user)

        await self.event_store.log(
            event_type=EventType.USER_LOGGED_IN,
            entity_type="user",
            entity_id=user.id,
            user_id=user.id,
            organization_id=organization.id,
            payload={"method": "password", "role": user.role_value},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return AuthResult(user=user, organization=organization, token=token)

    # ------------------------------------------------------------------
    # Registration and account creation
    # ------------------------------------------------------------------

    async def register(
        self,
        username: str,
        password: str,
        email: str,
        organization_id: uuid.UUID,
        ip_address: Optional[str] = None,
    ) -> AuthResult:
        """
        Register an organization member and log them in.

        Raises:
            ValidationError: bad input, unknown organization, or the system organization
            ConflictError: username or email already used in the organization
        """
        username = normalize_username(username, self.settings)
        password = check_password(password, self.settings)
        email = normalize_email(email)

        organization = await self.store.find_org_by_id(organization_id)
        if organization is None:
            raise ValidationError("Organization does not exist", field="organization_id")
        if self.store.is_system_organization(organization):
            raise ValidationError(
                "Registration into the system organization is not allowed",
                field="organization_id",
            )

        await self._ensure_available(organization.id, username, email)

        user = User(
            username=username,
            email=email,
            password_hash=await self._hash(password),
            role=UserRole.ORG_MEMBER.value,
            organization_id=organization.id,
        )
        await self.store.create_user(user)

        await self.event_store.log(
            event_type=EventType.USER_REGISTERED,
            entity_type="user",
            entity_id=user.id,
            user_id=user.id,
            organization_id=organization.id,
            payload={"username": user.username, "email": user.email, "role": user.role_value},
            ip_address=ip_address,
        )
        logger.info("User registered", extra={"organization_id": str(organization.id)})

        return AuthResult(user=user, organization=organization, token=self.issue_token(user))

    async def create_admin(
        self,
        principal: Principal,
        username: str,
        password: str,
        email: str,
        ip_address: Optional[str] = None,
    ) -> User:
        """
        Create another super admin. No token is issued.

        Raises:
            ForbiddenError: caller is not a super admin
            ValidationError: bad input
            ConflictError: admin username (or system-org email) already taken
        """
        self.permissions.ensure(principal, Action.ADMIN_CREATE)

        username = normalize_username(username, self.settings)
        password = check_password(password, self.settings)
        email = normalize_email(email)

        if await self.store.count_users(role=UserRole.SUPER_ADMIN, username=username):
            raise ConflictError("Admin username already exists", field="username")

        admin = User(
            username=username,
            email=email,
            password_hash=await self._hash(password),
            role=UserRole.SUPER_ADMIN.value,
        )
        # The store binds super admins to the system organization
        await self.store.create_user(admin)

        await self.event_store.log(
            event_type=EventType.ADMIN_CREATED,
            entity_type="user",
            entity_id=admin.id,
            user_id=principal.user_id,
            organization_id=admin.organization_id,
            payload={"username": admin.username, "email": admin.email},
            ip_address=ip_address,
        )
        logger.info("Super admin created", extra={"created_by": str(principal.user_id)})
        return admin

    async def create_org_admin(
        self,
        principal: Principal,
        organization_id: uuid.UUID,
        username: str,
        password: str,
        email: str,
        ip_address: Optional[str] = None,
    ) -> User:
        """
        Create an organization admin inside a tenant organization.

        Raises:
            ForbiddenError: caller is not a super admin
            NotFoundError: organization does not exist
            ValidationError: bad input or the system organization
            ConflictError: username or email already used in the organization
        """
        self.permissions.ensure(principal, Action.ORG_ADMIN_CREATE, target_org_id=organization_id)

        username = normalize_username(username, self.settings)
        password = check_password(password, self.settings)
        email = normalize_email(email)

        organization = await self.store.find_org_by_id(organization_id)
        if organization is None:
            raise NotFoundError("Organization not found")
        if self.store.is_system_organization(organization):
            raise ValidationError(
                "Organization admins cannot be created in the system organization",
                field="organization_id",
            )

        await self._ensure_available(organization.id, username, email)

        user = User(
            username=username,
            email=email,
            password_hash=await self._hash(password),
            role=UserRole.ORG_ADMIN.value,
            organization_id=organization.id,
        )
        await self.store.create_user(user)

        await self.event_store.log(
            event_type=EventType.ORG_ADMIN_CREATED,
            entity_type="user",
            entity_id=user.id,
            user_id=principal.user_id,
            organization_id=organization.id,
            payload={"username": user.username, "email": user.email},
            ip_address=ip_address,
        )
        return user

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    async def bootstrap(self) -> Optional[User]:
        """
        Create the system organization and the first super admin.

        Does nothing when a super admin already exists. The caller runs
        this inside one transaction so a failure leaves neither row behind.

        Returns:
            The created super admin, or None if the system was already set up
        """
        if await self.store.count_users(role=UserRole.SUPER_ADMIN):
            return None

        system_org = await self.store.get_system_organization()
        if system_org is None:
            system_org = await self.store.create_org(
                Organization(
                    code=self.settings.system_organization_code,
                    description="System Organization",
                )
            )

        if self.settings.uses_default_bootstrap_password:
            logger.warning(
                "BOOTSTRAP_ADMIN_PASSWORD is not set; the first super admin uses the "
                "built-in default password. Change it immediately."
            )

        # Bootstrap credentials come from configuration, not user input
        admin = User(
            username=self.settings.bootstrap_admin_username,
            email=self.settings.bootstrap_admin_email.strip().lower(),
            password_hash=await self._hash(self.settings.effective_bootstrap_password),
            role=UserRole.SUPER_ADMIN.value,
            organization_id=system_org.id,
        )
        await self.store.create_user(admin)

        await self.event_store.log(
            event_type=EventType.SYSTEM_BOOTSTRAPPED,
            entity_type="organization",
            entity_id=system_org.id,
            organization_id=system_org.id,
            payload={"admin_username": admin.username},
        )
        logger.info("System initialized with super admin %s", admin.username)
        return admin

    # ------------------------------------------------------------------
    # Request authentication and profile
    # ------------------------------------------------------------------

    async def authenticate_token(self, token: str) -> Principal:
        """
        Verify a bearer token and resolve the caller.

        Raises:
            UnauthorizedError: invalid token, or the user no longer exists
        """
        claims = self.token_service.verify(token)
        user = await self.store.get_user_by_id(claims.user_id)
        if user is None:
            raise UnauthorizedError()
        return Principal.from_user(user)

    async def get_profile(self, principal: Principal) -> Profile:
        user = await self.store.get_user_by_id(principal.user_id)
        if user is None:
            raise NotFoundError("User not found")
        organization = await self.store.find_org_by_id(user.organization_id)
        return Profile(user=user, organization=organization)

    def issue_token(self, user: User) -> IssuedToken:
        return self.token_service.issue(
            user_id=user.id,
            username=user.username,
            role=user.role_value,
            organization_id=user.organization_id,
        )

    # ------------------------------------------------------------------

    async def _ensure_available(self, organization_id: uuid.UUID, username: str, email: str) -> None:
        if await self.store.count_users(organization_id=organization_id, username=username, email=email):
            raise ConflictError("Username or email already exists in this organization")

    async def _hash(self, password: str) -> str:
        # bcrypt is CPU-bound; keep it off the event loop
        return await asyncio.to_thread(self.hasher.hash, password)

    async def _verify(self, password: str, digest: Optional[str]) -> bool:
        return await asyncio.to_thread(self.hasher.verify, password, digest)
