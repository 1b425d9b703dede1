"""
Kernel Data Models

SQLAlchemy models for tenants, users and the audit log.
"""

from src.kernel.models.base import Base, TimestampMixin, SoftDeleteMixin, generate_uuid, utcnow
from src.kernel.models.organization import Organization
from src.kernel.models.user import User, UserRole
from src.kernel.models.event_log import EventLog, EventType

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "SoftDeleteMixin",
    "generate_uuid",
    "utcnow",
    # Tenancy
    "Organization",
    # User
    "User",
    "UserRole",
    # Event Log
    "EventLog",
    "EventType",
]
