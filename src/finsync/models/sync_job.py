"""Sync job model: one deduplicated reconciliation attempt for a linked item."""
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from finsync.models.base import BaseModel, JSONType, utcnow
from finsync.models.enums import SyncJobStatus


class SyncJob(BaseModel):
    """Sync job keyed by the fingerprint of its trigger payload.

    Status moves PENDING -> PROCESSING -> COMPLETED | RETRY | FAILED, with
    RETRY -> PROCESSING on the next due attempt. Only PENDING and RETRY rows
    can be claimed.
    """

    __tablename__ = "sync_jobs"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    plaid_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("plaid_items.id", ondelete="CASCADE"), nullable=False
    )
    idempotency_key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    trigger_source: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=SyncJobStatus.PENDING.value, nullable=False
    )
    attempt_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_attempts: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    next_run_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    payload: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    __table_args__ = (
        CheckConstraint("attempt_count >= 0", name="ck_sync_jobs_attempt_count"),
        CheckConstraint("max_attempts >= 1", name="ck_sync_jobs_max_attempts"),
        Index("ix_sync_jobs_due", "status", "next_run_at"),
        Index("ix_sync_jobs_item_status", "plaid_item_id", "status"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in (SyncJobStatus.COMPLETED.value, SyncJobStatus.FAILED.value)

    def __repr__(self) -> str:
        return (
            f"<SyncJob(id={self.id}, status={self.status}, "
            f"attempt_count={self.attempt_count}/{self.max_attempts})>"
        )
