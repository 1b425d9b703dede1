"""
Password change (self-service) and reset (admin-initiated).

These are the only code paths that rewrite an existing password hash.
"""

import asyncio
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings, get_settings
from src.kernel.errors import InvalidOldPasswordError, NotFoundError, ValidationError
from src.kernel.events.event_store import EventStore
from src.kernel.identity.identity_store import IdentityStore
from src.kernel.identity.jwt import IssuedToken, TokenService, get_token_service
from src.kernel.identity.password import PasswordHasher, get_password_hasher
from src.kernel.identity.principal import Principal
from src.kernel.identity.validation import check_password
from src.kernel.models.event_log import EventType
from src.kernel.models.user import UserRole
from src.kernel.permissions.permission_service import Action, PermissionService
from src.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class PasswordChanged:
    """Result of a self-service change: a fresh token for session continuity."""

    user_id: uuid.UUID
    token: IssuedToken


class PasswordLifecycleService:
    """Changes and resets password hashes."""

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

    async def change_password(
        self,
        principal: Principal,
        old_password: str,
        new_password: str,
        ip_address: Optional[str] = None,
    ) -> PasswordChanged:
        """
        Change the caller's own password.

        Args:
            principal: The authenticated caller
            old_password: Current password as proof of possession
            new_password: Replacement password
            ip_address: Client IP for audit

        Raises:
            ValidationError: new password out of bounds or equal to the old one
            NotFoundError: the caller's account no longer exists
            InvalidOldPasswordError: old password does not match
        """
        self.permissions.ensure(principal, Action.PASSWORD_CHANGE)
        new_password = check_password(new_password, self.settings, field="new_password")

        user = await self.store.get_user_by_id(principal.user_id)
        if user is None:
            raise NotFoundError("User not found")

        if not await asyncio.to_thread(self.hasher.verify, old_password or "", user.password_hash):
            logger.info("Password change rejected: old password mismatch")
            raise InvalidOldPasswordError()

        if new_password == old_password:
            raise ValidationError(
                "New password must differ from the current password",
                field="new_password",
            )

        user.password_hash = await asyncio.to_thread(self.hasher.hash, new_password)
        await self.store.save_user(user)

        await self.event_store.log(
            event_type=EventType.USER_PASSWORD_CHANGED,
            entity_type="user",
            entity_id=user.id,
            user_id=user.id,
            organization_id=user.organization_id,
            ip_address=ip_address,
        )
        logger.info("Password changed")

        token = self.token_service.issue(
            user_id=user.id,
            username=user.username,
            role=user.role_value,
            organization_id=user.organization_id,
        )
        return PasswordChanged(user_id=user.id, token=token)

    async def reset_password(
        self,
        principal: Principal,
        target_user_id: uuid.UUID,
        new_password: str,
        ip_address: Optional[str] = None,
    ) -> None:
        """
        Set another user's password without proof of the old one.

        Super admins may reset anyone; org admins only members of their own
        organization ranked below them.

        Raises:
            ValidationError: new password out of bounds
            NotFoundError: target user does not exist
            ForbiddenError: caller may not reset this user's password
        """
        new_password = check_password(new_password, self.settings, field="new_password")

        target = await self.store.get_user_by_id(target_user_id)
        if target is None:
            raise NotFoundError("User not found")

        self.permissions.ensure(
            principal,
            Action.PASSWORD_RESET,
            target_org_id=target.organization_id,
            target_role=UserRole(target.role),
        )

        target.password_hash = await asyncio.to_thread(self.hasher.hash, new_password)
        await self.store.save_user(target)

        await self.event_store.log(
            event_type=EventType.USER_PASSWORD_RESET,
            entity_type="user",
            entity_id=target.id,
            user_id=principal.user_id,
            organization_id=target.organization_id,
            ip_address=ip_address,
        )
        logger.info("Password reset", extra={"target_user_id": str(target.id)})
