"""
Organization model: the tenant boundary.
"""

import uuid
from typing import TYPE_CHECKING, List

from sqlalchemy import String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.kernel.models.base import Base, SoftDeleteMixin, TimestampMixin, generate_uuid

if TYPE_CHECKING:
    from src.kernel.models.user import User


class Organization(Base, TimestampMixin, SoftDeleteMixin):
    """
    Tenant that scopes username/email uniqueness and member visibility.

    An organization does not own its users' lifecycle; ``users`` is a
    back-reference only. Members are read through the identity store, never
    through the relationship (it raises on access to keep I/O explicit).
    """

    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    code: Mapped[str] = mapped_column(
        String(32),
        unique=True,
        index=True,
        nullable=False,
    )
    description: Mapped[str] = mapped_column(
        String(256),
        nullable=False,
        default="",
    )

    users: Mapped[List["User"]] = relationship(
        "User",
        back_populates="organization",
        lazy="raise",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Organization {self.code}>"
