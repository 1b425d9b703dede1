"""
User model for identity management.
"""

import uuid
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.kernel.models.base import Base, SoftDeleteMixin, TimestampMixin, generate_uuid

if TYPE_CHECKING:
    from src.kernel.models.organization import Organization


class UserRole(str, Enum):
    """User roles, highest privilege first."""
    SUPER_ADMIN = "super_admin"
    ORG_ADMIN = "org_admin"
    ORG_MEMBER = "org_member"


class User(Base, TimestampMixin, SoftDeleteMixin):
    """
    User account model.

    Usernames and emails are unique per organization, not globally.
    Super admins all live in the system organization.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    username: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        index=True,
    )
    password_hash: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
    )
    email: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
    )
    role: Mapped[UserRole] = mapped_column(
        String(32),
        default=UserRole.ORG_MEMBER.value,
        nullable=False,
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("organizations.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    organization: Mapped["Organization"] = relationship(
        "Organization",
        back_populates="users",
        lazy="raise",
    )

    __table_args__ = (
        UniqueConstraint("organization_id", "username"),
        UniqueConstraint("organization_id", "email"),
    )

    @property
    def role_value(self) -> str:
        # role may be enum or str when loaded from SQLite
        return self.role.value if hasattr(self.role, "value") else self.role

    def __repr__(self) -> str:
        return f"<User {self.username} org={self.organization_id}>"
