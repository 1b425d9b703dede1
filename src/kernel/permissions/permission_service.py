"""
Permission service for role and tenant scoped access control.
"""

import uuid
from enum import Enum
from typing import TYPE_CHECKING, Optional

from src.kernel.errors import ForbiddenError
from src.kernel.models.user import UserRole
from src.logging_config import get_logger

if TYPE_CHECKING:
    from src.kernel.identity.principal import Principal

logger = get_logger(__name__)


class Action(str, Enum):
    """Operations gated by the policy."""
    ORGANIZATION_CREATE = "organization.create"
    ORGANIZATION_LIST = "organization.list"
    ORGANIZATION_READ = "organization.read"
    ORGANIZATION_UPDATE = "organization.update"
    ORGANIZATION_DELETE = "organization.delete"
    ADMIN_CREATE = "admin.create"
    ORG_ADMIN_CREATE = "org_admin.create"
    PASSWORD_RESET = "password.reset"
    PASSWORD_CHANGE = "password.change"


# Role hierarchy - higher rank includes everything a lower rank may do
ROLE_RANK = {
    UserRole.ORG_MEMBER: 0,
    UserRole.ORG_ADMIN: 1,
    UserRole.SUPER_ADMIN: 2,
}

SUPER_ADMIN_ONLY = frozenset({
    Action.ORGANIZATION_CREATE,
    Action.ORGANIZATION_LIST,
    Action.ORGANIZATION_READ,
    Action.ORGANIZATION_UPDATE,
    Action.ORGANIZATION_DELETE,
    Action.ADMIN_CREATE,
    Action.ORG_ADMIN_CREATE,
})


def is_permitted(
    caller_role: UserRole,
    caller_org_id: Optional[uuid.UUID],
    action: Action,
    target_org_id: Optional[uuid.UUID] = None,
    target_role: Optional[UserRole] = None,
) -> bool:
    """
    Decide whether a caller may perform an action. Pure, no I/O.

    Args:
        caller_role: Role of the authenticated caller
        caller_org_id: Caller's organization
        action: The operation being attempted
        target_org_id: Organization of the target resource, if any
        target_role: Role of the target user, if any

    Returns:
        True if permitted
    """
    caller_role = UserRole(caller_role)

    if action == Action.PASSWORD_CHANGE:
        # Self-service; old-password proof is checked by the lifecycle manager
        return True

    if caller_role == UserRole.SUPER_ADMIN:
        return True

    if action in SUPER_ADMIN_ONLY:
        return False

    if action == Action.PASSWORD_RESET:
        if caller_role != UserRole.ORG_ADMIN:
            return False
        if target_org_id is None or caller_org_id != target_org_id:
            return False
        if target_role is None:
            return False
        # Org admins only reset accounts ranked below them
        return ROLE_RANK[UserRole(target_role)] < ROLE_RANK[UserRole.ORG_ADMIN]

    return False


class PermissionService:
    """
    Applies the policy to a principal and raises on denial.

    Denials always carry the same message; the reason is logged only.
    """

    def check(
        self,
        principal: "Principal",
        action: Action,
        target_org_id: Optional[uuid.UUID] = None,
        target_role: Optional[UserRole] = None,
    ) -> bool:
        return is_permitted(
            principal.role,
            principal.organization_id,
            action,
            target_org_id=target_org_id,
            target_role=target_role,
        )

    def ensure(
        self,
        principal: "Principal",
        action: Action,
        target_org_id: Optional[uuid.UUID] = None,
        target_role: Optional[UserRole] = None,
    ) -> None:
        """
        Raises:
            ForbiddenError: if the policy denies the action
        """
        if self.check(principal, action, target_org_id, target_role):
            return
        logger.info(
            "Permission denied",
            extra={
                "action": action.value,
                "actor_id": str(principal.user_id),
                "caller_role": principal.role.value,
                "same_org": target_org_id == principal.organization_id if target_org_id else None,
                "target_role": target_role.value if hasattr(target_role, "value") else target_role,
            },
        )
        raise ForbiddenError()
