"""
Event Store service for append-only audit logging.

Mutations are logged in the same session (and transaction) that performs
them, so an audit row exists if and only if the change committed.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, and_, desc, func
from sqlalchemy.ext.asyncio import AsyncSession

from src.kernel.models.event_log import EventLog, EventType

# Never persisted in an audit payload
_REDACTED_KEYS = frozenset({"password", "password_hash", "old_password", "new_password", "token"})


class EventStore:
    """
    Service for managing the immutable event log.

    Usage:
        event_store = EventStore(session)
        await event_store.log(
            event_type=EventType.ORGANIZATION_CREATED,
            entity_type="organization",
            entity_id=org.id,
            user_id=principal.user_id,
            payload={"code": org.code},
        )
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log(
        self,
        event_type: EventType,
        entity_type: str,
        entity_id: uuid.UUID,
        user_id: Optional[uuid.UUID] = None,
        organization_id: Optional[uuid.UUID] = None,
        payload: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> EventLog:
        """
        Log an event to the immutable audit log.

        Args:
            event_type: The type of event
            entity_type: The type of entity (user, organization)
            entity_id: The ID of the entity
            user_id: The acting user (None for system events)
            organization_id: Tenant the event belongs to
            payload: Additional event data; secret-looking keys are dropped
            ip_address: Client IP address
            user_agent: Client user agent

        Returns:
            The created EventLog record
        """
        if payload:
            payload = self._serialize_payload(payload)

        event = EventLog(
            event_type=event_type.value if hasattr(event_type, "value") else event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            organization_id=organization_id,
            payload=payload or {},
            ip_address=ip_address,
            user_agent=user_agent,
        )

        self.session.add(event)
        # Visible to queries in this transaction; the caller still decides whether it commits
        await self.session.flush()
        return event

    async def get_entity_history(
        self,
        entity_type: str,
        entity_id: uuid.UUID,
        event_types: Optional[List[EventType]] = None,
        limit: int = 100,
    ) -> List[EventLog]:
        """Events for one entity, newest first."""
        query = select(EventLog).where(
            and_(
                EventLog.entity_type == entity_type,
                EventLog.entity_id == entity_id,
            )
        )

        if event_types:
            query = query.where(EventLog.event_type.in_(event_types))

        query = query.order_by(desc(EventLog.created_at)).limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_events(
        self,
        event_type: Optional[EventType] = None,
        entity_id: Optional[uuid.UUID] = None,
        user_id: Optional[uuid.UUID] = None,
        since: Optional[datetime] = None,
    ) -> int:
        """Count events matching the given criteria."""
        query = select(func.count()).select_from(EventLog)

        if event_type:
            query = query.where(EventLog.event_type == event_type)
        if entity_id:
            query = query.where(EventLog.entity_id == entity_id)
        if user_id:
            query = query.where(EventLog.user_id == user_id)
        if since:
            query = query.where(EventLog.created_at >= since)

        result = await self.session.execute(query)
        return result.scalar_one()

    @staticmethod
    def _serialize_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
        """Drop secrets and coerce values to JSON-friendly types."""
        serialized: Dict[str, Any] = {}
        for key, value in payload.items():
            if key in _REDACTED_KEYS:
                continue
            if isinstance(value, uuid.UUID):
                value = str(value)
            elif isinstance(value, datetime):
                value = value.isoformat()
            elif hasattr(value, "value"):
                value = value.value
            serialized[key] = value
        return serialized
