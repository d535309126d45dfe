"""Audit event repository."""
from sqlalchemy.ext.asyncio import AsyncSession

from finsync.models.audit_event import AuditEvent
from finsync.repositories.base import BaseRepository


class AuditEventRepository(BaseRepository[AuditEvent]):
    """Repository for AuditEvent model."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, AuditEvent)
