"""
Organization schemas.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr

from src.kernel.models.user import UserRole


class OrganizationCreate(BaseModel):
    """Organization creation request."""

    code: str
    description: Optional[str] = None


class OrganizationUpdate(BaseModel):
    """Organization update request; omitted fields stay unchanged."""

    code: Optional[str] = None
    description: Optional[str] = None


class OrgAdminCreate(BaseModel):
    """Organization admin creation request."""

    username: str
    password: str
    email: EmailStr


class MemberResponse(BaseModel):
    id: uuid.UUID
    username: str
    email: str
    role: UserRole

    class Config:
        from_attributes = True


class OrganizationResponse(BaseModel):
    """Organization response."""

    id: uuid.UUID
    code: str
    description: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OrganizationListItem(OrganizationResponse):
    member_count: int = 0


class OrganizationDetailResponse(OrganizationResponse):
    """Organization with its live members."""

    members: List[MemberResponse] = []
