"""
Organization management endpoints. Super admins only.
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, Request, status

from src.api.deps import DbSession, SuperAdmin, get_client_ip, require_super_admin
from src.kernel.identity.identity_service import IdentityService
from src.kernel.organizations.organization_service import OrganizationService
from src.schemas.auth import UserResponse
from src.schemas.common import SuccessResponse
from src.schemas.organization import (
    MemberResponse,
    OrgAdminCreate,
    OrganizationCreate,
    OrganizationDetailResponse,
    OrganizationListItem,
    OrganizationResponse,
    OrganizationUpdate,
)

router = APIRouter(dependencies=[Depends(require_super_admin)])


@router.post("", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    data: OrganizationCreate,
    principal: SuperAdmin,
    db: DbSession,
):
    """Create a new organization."""
    organization = await OrganizationService(db).create(
        principal,
        code=data.code,
        description=data.description,
    )
    return OrganizationResponse.model_validate(organization)


@router.get("", response_model=List[OrganizationListItem])
async def list_organizations(principal: SuperAdmin, db: DbSession):
    """List live organizations with member counts."""
    summaries = await OrganizationService(db).list(principal)
    items = []
    for summary in summaries:
        item = OrganizationListItem.model_validate(summary.organization)
        item.member_count = summary.member_count
        items.append(item)
    return items


@router.get("/{organization_id}", response_model=OrganizationDetailResponse)
async def get_organization(
    organization_id: uuid.UUID,
    principal: SuperAdmin,
    db: DbSession,
):
    """Get an organization and its members."""
    detail = await OrganizationService(db).get(principal, organization_id)
    response = OrganizationDetailResponse.model_validate(detail.organization)
    response.members = [MemberResponse.model_validate(member) for member in detail.members]
    return response


@router.put("/{organization_id}", response_model=OrganizationResponse)
async def update_organization(
    organization_id: uuid.UUID,
    data: OrganizationUpdate,
    principal: SuperAdmin,
    db: DbSession,
):
    """Update an organization's code and/or description."""
    organization = await OrganizationService(db).update(
        principal,
        organization_id,
        code=data.code,
        description=data.description,
    )
    return OrganizationResponse.model_validate(organization)


@router.delete("/{organization_id}", response_model=SuccessResponse)
async def delete_organization(
    organization_id: uuid.UUID,
    principal: SuperAdmin,
    db: DbSession,
):
    """Delete an organization that has no members."""
    await OrganizationService(db).delete(principal, organization_id)
    return SuccessResponse(message="Organization deleted successfully")


@router.post(
    "/{organization_id}/admins",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_organization_admin(
    request: Request,
    organization_id: uuid.UUID,
    data: OrgAdminCreate,
    principal: SuperAdmin,
    db: DbSession,
):
    """Create an admin inside an organization."""
    user = await IdentityService(db).create_org_admin(
        principal,
        organization_id,
        username=data.username,
        password=data.password,
        email=data.email,
        ip_address=get_client_ip(request),
    )
    return UserResponse.model_validate(user)
