"""Audit trail writers.

``record`` never raises: audit failures are logged and dropped so they can
never fail the operation being audited.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from finsync.models.audit_event import AuditEvent
from finsync.repositories.audit_event import AuditEventRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditRecord:
    event_type: str
    user_id: UUID | None = None
    event_source: str = "API"
    ip_address: str | None = None
    user_agent: str | None = None
    request_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class AuditSink(Protocol):
    async def record(self, event: AuditRecord) -> None:
        ...


class DatabaseAuditSink:
    """Writes audit events through a dedicated session.

    A separate session keeps audit writes out of the caller's transaction, so
    a rollback there does not lose the audit row and vice versa.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def record(self, event: AuditRecord) -> None:
        try:
            async with self._session_factory() as session:
                await AuditEventRepository(session).create(
                    AuditEvent(
                        user_id=event.user_id,
                        event_type=event.event_type,
                        event_source=event.event_source,
                        ip_address=event.ip_address,
                        user_agent=event.user_agent,
                        request_id=event.request_id,
                        event_metadata=dict(event.metadata),
                    )
                )
        except Exception as exc:
            logger.warning(
                "Failed to write audit event",
                extra={"error_type": type(exc).__name__},
            )


class NullAuditSink:
    """Discards every event."""

    async def record(self, event: AuditRecord) -> None:
        return None
