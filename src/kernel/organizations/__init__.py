"""
Organization Core - tenant lifecycle.
"""

from src.kernel.organizations.organization_service import (
    OrganizationDetail,
    OrganizationService,
    OrganizationSummary,
)

__all__ = [
    "OrganizationDetail",
    "OrganizationService",
    "OrganizationSummary",
]
