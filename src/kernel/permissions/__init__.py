"""
Permission Core - role and tenant scoped access control.
"""

from src.kernel.permissions.permission_service import (
    Action,
    PermissionService,
    is_permitted,
)

__all__ = [
    "Action",
    "PermissionService",
    "is_permitted",
]
