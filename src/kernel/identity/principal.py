"""
The authenticated identity passed explicitly into every service call.
"""

import uuid
from dataclasses import dataclass

from src.kernel.models.user import User, UserRole


@dataclass(frozen=True)
class Principal:
    """Who is calling: plain fields, no ORM state."""

    user_id: uuid.UUID
    username: str
    role: UserRole
    organization_id: uuid.UUID

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        return cls(
            user_id=user.id,
            username=user.username,
            role=UserRole(user.role),
            organization_id=user.organization_id,
        )

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN
