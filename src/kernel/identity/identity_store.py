"""
Persistence contract for users and organizations.

The only module in the kernel that builds queries against the identity
tables. Soft-deleted rows are invisible to every lookup except the
organization-code uniqueness check.
"""

import uuid
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import select, and_, or_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings, get_settings
from src.kernel.errors import ConflictError, InternalError, ValidationError
from src.kernel.models.organization import Organization
from src.kernel.models.user import User, UserRole


class IdentityStore:
    """
    Repository for User and Organization rows.

    Writes only flush; the session owner commits or rolls back.
    """

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        """Get a live user by ID."""
        query = select(User).where(
            and_(
                User.id == user_id,
                User.deleted_at.is_(None),
            )
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def find_user_by_username_org_role(
        self,
        username: str,
        organization_id: uuid.UUID,
        roles: Iterable[UserRole],
    ) -> Optional[User]:
        """Get a live user by username within one organization, restricted to roles."""
        role_values = [r.value if hasattr(r, "value") else r for r in roles]
        query = select(User).where(
            and_(
                User.username == username,
                User.organization_id == organization_id,
                User.role.in_(role_values),
                User.deleted_at.is_(None),
            )
        )
        result = await self.session.execute(query)
        return result.scalars().first()

    async def count_users(
        self,
        organization_id: Optional[uuid.UUID] = None,
        role: Optional[UserRole] = None,
        username: Optional[str] = None,
        email: Optional[str] = None,
    ) -> int:
        """
        Count live users matching a filter.

        When both username and email are given they are OR-ed, so the count
        answers "is this username or this email already taken".
        """
        conditions = [User.deleted_at.is_(None)]
        if organization_id is not None:
            conditions.append(User.organization_id == organization_id)
        if role is not None:
            conditions.append(User.role == (role.value if hasattr(role, "value") else role))
        if username is not None and email is not None:
            conditions.append(or_(User.username == username, User.email == email))
        elif username is not None:
            conditions.append(User.username == username)
        elif email is not None:
            conditions.append(User.email == email)

        query = select(func.count()).select_from(User).where(and_(*conditions))
        result = await self.session.execute(query)
        return result.scalar_one()

    async def list_users(self, organization_id: uuid.UUID) -> List[User]:
        """Live members of an organization, ordered by username."""
        query = (
            select(User)
            .where(
                and_(
                    User.organization_id == organization_id,
                    User.deleted_at.is_(None),
                )
            )
            .order_by(User.username)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def create_user(self, user: User) -> User:
        """
        Persist a new user.

        Super admins are always re-bound to the system organization. Other
        users must reference an organization and may not reuse a username or
        email inside it.

        Raises:
            InternalError: system organization missing for a super admin
            ValidationError: non-super-admin without an organization
            ConflictError: username or email already taken in the organization
        """
        if user.role == UserRole.SUPER_ADMIN:
            system_org = await self.get_system_organization()
            if system_org is None:
                raise InternalError("System organization not found")
            user.organization_id = system_org.id
        elif user.organization_id is None:
            raise ValidationError("Organization is required", field="organization_id")

        taken = await self.count_users(
            organization_id=user.organization_id,
            username=user.username,
            email=user.email,
        )
        if taken:
            raise ConflictError("Username or email already exists in this organization")

        self.session.add(user)
        await self._flush("Username or email already exists in this organization")
        return user

    async def save_user(self, user: User) -> User:
        self.session.add(user)
        await self._flush("Username or email already exists in this organization")
        return user

    # ------------------------------------------------------------------
    # Organizations
    # ------------------------------------------------------------------

    async def find_org_by_id(self, organization_id: uuid.UUID) -> Optional[Organization]:
        query = select(Organization).where(
            and_(
                Organization.id == organization_id,
                Organization.deleted_at.is_(None),
            )
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def find_org_by_code(self, code: str) -> Optional[Organization]:
        query = select(Organization).where(
            and_(
                Organization.code == code,
                Organization.deleted_at.is_(None),
            )
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_system_organization(self) -> Optional[Organization]:
        return await self.find_org_by_code(self.settings.system_organization_code)

    def is_system_organization(self, organization: Organization) -> bool:
        return organization.code == self.settings.system_organization_code

    async def count_orgs(
        self,
        code: Optional[str] = None,
        exclude_id: Optional[uuid.UUID] = None,
        include_deleted: bool = True,
    ) -> int:
        """
        Count organizations.

        Soft-deleted rows are included by default: codes are never reused,
        matching the unique index on the column.
        """
        conditions = []
        if code is not None:
            conditions.append(Organization.code == code)
        if exclude_id is not None:
            conditions.append(Organization.id != exclude_id)
        if not include_deleted:
            conditions.append(Organization.deleted_at.is_(None))

        query = select(func.count()).select_from(Organization)
        if conditions:
            query = query.where(and_(*conditions))
        result = await self.session.execute(query)
        return result.scalar_one()

    async def list_orgs(self) -> Sequence[Organization]:
        query = (
            select(Organization)
            .where(Organization.deleted_at.is_(None))
            .order_by(Organization.code)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def member_counts(self) -> dict[uuid.UUID, int]:
        """Live member count per organization."""
        query = (
            select(User.organization_id, func.count())
            .where(User.deleted_at.is_(None))
            .group_by(User.organization_id)
        )
        result = await self.session.execute(query)
        return {org_id: count for org_id, count in result.all()}

    async def create_org(self, organization: Organization) -> Organization:
        if await self.count_orgs(code=organization.code):
            raise ConflictError("Organization code already exists", field="code")
        self.session.add(organization)
        await self._flush("Organization code already exists")
        return organization

    async def save_org(self, organization: Organization) -> Organization:
        self.session.add(organization)
        await self._flush("Organization code already exists")
        return organization

    async def delete_org(self, organization: Organization) -> None:
        """Soft delete; callers check membership first."""
        organization.mark_deleted()
        await self._flush("Organization could not be deleted")

    # ------------------------------------------------------------------

    async def _flush(self, conflict_message: str) -> None:
        """Flush, turning constraint violations into ConflictError."""
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise ConflictError(conflict_message) from exc
