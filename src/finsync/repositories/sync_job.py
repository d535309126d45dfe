"""Sync job repository: deduplicated insert and conditional state transitions."""
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from finsync.models.enums import CLAIMABLE_STATUSES, TERMINAL_STATUSES, SyncJobStatus
from finsync.models.sync_job import SyncJob
from finsync.repositories.base import BaseRepository


@dataclass(frozen=True)
class ClaimedJob:
    """Snapshot of a job row taken by a successful claim."""

    id: UUID
    user_id: UUID
    plaid_item_id: UUID
    attempt_count: int
    max_attempts: int


class SyncJobRepository(BaseRepository[SyncJob]):
    """Repository for SyncJob model.

    Every state transition is a single conditional UPDATE so that concurrent
    workers racing on the same row see exactly one winner.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(db, SyncJob)

    async def insert_if_absent(self, values: dict[str, Any]) -> UUID | None:
        """Insert a job unless its idempotency key exists.

        Returns:
            New job id, or None when the key was already taken
        """
        stmt = (
            self._insert()
            .values(**values)
            .on_conflict_do_nothing(index_elements=["idempotency_key"])
            .returning(SyncJob.id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_key(self, idempotency_key: str) -> SyncJob | None:
        result = await self.db.execute(
            select(SyncJob).where(SyncJob.idempotency_key == idempotency_key)
        )
        return result.scalar_one_or_none()

    async def get_for_user(self, job_id: UUID, user_id: UUID) -> SyncJob | None:
        """Get a job only if it belongs to the user, bypassing stale identity-map state."""
        result = await self.db.execute(
            select(SyncJob)
            .where(SyncJob.id == job_id, SyncJob.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def claim(self, job_id: UUID, now: datetime) -> ClaimedJob | None:
        """Move a due PENDING/RETRY job to PROCESSING.

        Returns:
            The claimed job, or None if another worker won or it is not due
        """
        result = await self.db.execute(
            update(SyncJob)
            .where(
                SyncJob.id == job_id,
                SyncJob.status.in_(CLAIMABLE_STATUSES),
                SyncJob.next_run_at <= now,
            )
            .values(status=SyncJobStatus.PROCESSING.value, updated_at=now)
            .returning(
                SyncJob.id,
                SyncJob.user_id,
                SyncJob.plaid_item_id,
                SyncJob.attempt_count,
                SyncJob.max_attempts,
            )
            .execution_options(synchronize_session=False)
        )
        row = result.first()
        if row is None:
            return None
        return ClaimedJob(*row)

    async def mark_completed(self, job_id: UUID, attempt_count: int, now: datetime) -> bool:
        result = await self.db.execute(
            update(SyncJob)
            .where(SyncJob.id == job_id, SyncJob.status == SyncJobStatus.PROCESSING.value)
            .values(
                status=SyncJobStatus.COMPLETED.value,
                attempt_count=attempt_count,
                last_error=None,
                updated_at=now,
            )
            .returning(SyncJob.id)
            .execution_options(synchronize_session=False)
        )
        return result.first() is not None

    async def mark_failed(
        self,
        job_id: UUID,
        attempt_count: int,
        status: SyncJobStatus,
        next_run_at: datetime,
        error: str,
        now: datetime,
    ) -> bool:
        """Record a failed attempt as RETRY or FAILED."""
        result = await self.db.execute(
            update(SyncJob)
            .where(SyncJob.id == job_id, SyncJob.status == SyncJobStatus.PROCESSING.value)
            .values(
                status=status.value,
                attempt_count=attempt_count,
                next_run_at=next_run_at,
                last_error=error,
                updated_at=now,
            )
            .returning(SyncJob.id)
            .execution_options(synchronize_session=False)
        )
        return result.first() is not None

    async def list_due_ids(
        self, now: datetime, limit: int, user_id: UUID | None = None
    ) -> list[UUID]:
        """Get ids of claimable jobs that are due, oldest ``next_run_at`` first."""
        query = select(SyncJob.id).where(
            SyncJob.status.in_(CLAIMABLE_STATUSES), SyncJob.next_run_at <= now
        )
        if user_id is not None:
            query = query.where(SyncJob.user_id == user_id)
        result = await self.db.execute(
            query.order_by(SyncJob.next_run_at, SyncJob.created_at).limit(limit)
        )
        return list(result.scalars().all())

    async def delete_terminal_before(
        self, cutoff: datetime, user_id: UUID | None = None
    ) -> int:
        """Delete COMPLETED/FAILED jobs last touched before ``cutoff``."""
        query = delete(SyncJob).where(
            SyncJob.status.in_(TERMINAL_STATUSES), SyncJob.updated_at < cutoff
        )
        if user_id is not None:
            query = query.where(SyncJob.user_id == user_id)
        result = await self.db.execute(
            query.returning(SyncJob.id).execution_options(synchronize_session=False)
        )
        return len(result.all())
