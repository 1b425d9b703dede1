"""
Organization service: create, list, read, update and soft-delete tenants.

Every operation is restricted to super admins.
"""

import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings, get_settings
from src.kernel.errors import ConflictError, NotFoundError, ValidationError
from src.kernel.events.event_store import EventStore
from src.kernel.identity.identity_store import IdentityStore
from src.kernel.identity.principal import Principal
from src.kernel.identity.validation import normalize_description, normalize_organization_code
from src.kernel.models.event_log import EventType
from src.kernel.models.organization import Organization
from src.kernel.models.user import User
from src.kernel.permissions.permission_service import Action, PermissionService
from src.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class OrganizationSummary:
    organization: Organization
    member_count: int = 0


@dataclass
class OrganizationDetail:
    organization: Organization
    members: List[User] = field(default_factory=list)


class OrganizationService:
    """
    Service for managing organizations.

    Deleting is soft and refused while live members remain. Codes are never
    reused, even after deletion.
    """

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or get_settings()
        self.store = IdentityStore(session, self.settings)
        self.event_store = EventStore(session)
        self.permissions = PermissionService()

    async def create(
        self,
        principal: Principal,
        code: str,
        description: Optional[str] = None,
    ) -> Organization:
        """
        Create a new organization.

        Raises:
            ForbiddenError: caller is not a super admin
            ValidationError: code or description out of bounds
            ConflictError: code already used (live or deleted)
        """
        self.permissions.ensure(principal, Action.ORGANIZATION_CREATE)

        code = normalize_organization_code(code)
        description = normalize_description(description)

        organization = await self.store.create_org(
            Organization(code=code, description=description)
        )

        await self.event_store.log(
            event_type=EventType.ORGANIZATION_CREATED,
            entity_type="organization",
            entity_id=organization.id,
            user_id=principal.user_id,
            organization_id=organization.id,
            payload={"code": organization.code, "description": organization.description},
        )
        logger.info("Organization created", extra={"organization_id": str(organization.id)})
        return organization

    async def list(self, principal: Principal) -> List[OrganizationSummary]:
        """Live organizations ordered by code, with live member counts."""
        self.permissions.ensure(principal, Action.ORGANIZATION_LIST)

        organizations = await self.store.list_orgs()
        counts = await self.store.member_counts()
        return [
            OrganizationSummary(organization=org, member_count=counts.get(org.id, 0))
            for org in organizations
        ]

    async def get(self, principal: Principal, organization_id: uuid.UUID) -> OrganizationDetail:
        """
        Get one organization with its live members.

        Raises:
            NotFoundError: organization does not exist
        """
        self.permissions.ensure(principal, Action.ORGANIZATION_READ, target_org_id=organization_id)

        organization = await self._get_or_404(organization_id)
        members = await self.store.list_users(organization.id)
        return OrganizationDetail(organization=organization, members=members)

    async def update(
        self,
        principal: Principal,
        organization_id: uuid.UUID,
        code: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Organization:
        """
        Update code and/or description. Omitted fields are left unchanged.

        Raises:
            NotFoundError: organization does not exist
            ValidationError: bad input, or renaming the system organization
            ConflictError: code already used by another organization
        """
        self.permissions.ensure(principal, Action.ORGANIZATION_UPDATE, target_org_id=organization_id)

        organization = await self._get_or_404(organization_id)
        changes = {}

        if code is not None:
            code = normalize_organization_code(code)
            if code != organization.code:
                if self.store.is_system_organization(organization):
                    raise ValidationError(
                        "The system organization code cannot be changed",
                        field="code",
                    )
                if await self.store.count_orgs(code=code, exclude_id=organization.id):
                    raise ConflictError("Organization code already exists", field="code")
                changes["code"] = {"old": organization.code, "new": code}
                organization.code = code

        if description is not None:
            description = normalize_description(description)
            if description != organization.description:
                changes["description"] = {"old": organization.description, "new": description}
                organization.description = description

        if not changes:
            return organization

        await self.store.save_org(organization)

        await self.event_store.log(
            event_type=EventType.ORGANIZATION_UPDATED,
            entity_type="organization",
            entity_id=organization.id,
            user_id=principal.user_id,
            organization_id=organization.id,
            payload={"changes": changes},
        )
        return organization

    async def delete(self, principal: Principal, organization_id: uuid.UUID) -> None:
        """
        Soft-delete an organization with no live members.

        Raises:
            NotFoundError: organization does not exist
            ConflictError: live users still reference the organization
        """
        self.permissions.ensure(principal, Action.ORGANIZATION_DELETE, target_org_id=organization_id)

        organization = await self._get_or_404(organization_id)

        members = await self.store.count_users(organization_id=organization.id)
        if members:
            raise ConflictError(
                f"Organization still has {members} member(s); remove them first"
            )

        await self.store.delete_org(organization)

        await self.event_store.log(
            event_type=EventType.ORGANIZATION_DELETED,
            entity_type="organization",
            entity_id=organization.id,
            user_id=principal.user_id,
            organization_id=organization.id,
            payload={"code": organization.code},
        )
        logger.info("Organization deleted", extra={"organization_id": str(organization.id)})

    async def _get_or_404(self, organization_id: uuid.UUID) -> Organization:
        organization = await self.store.find_org_by_id(organization_id)
        if organization is None:
            raise NotFoundError("Organization not found")
        return organization
