"""
Stable Kernel Layer

Foundational components of the identity service:
- Identity Core (accounts, credentials, tokens, bootstrap)
- Organization Core (tenant lifecycle)
- Permission Core (role and tenant scoped policy)
- Immutable Event Log (audit trail of every identity mutation)

Architectural Invariants:
- Services never commit; the request (or startup) owns the transaction
- Every mutation writes an event row in the same transaction
- Passwords, hashes and tokens never reach logs or the event payloads
"""

from src.kernel.models import (
    Organization,
    User,
    UserRole,
    EventLog,
    EventType,
)

__all__ = [
    "Organization",
    "User",
    "UserRole",
    "EventLog",
    "EventType",
]
