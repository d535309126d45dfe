"""Sync job state machine.

A sync request (webhook delivery or manual trigger) is fingerprinted and
stored at most once. Workers claim due jobs with a single conditional UPDATE,
run the reconciler and record the outcome:

    PENDING --claim--> PROCESSING --ok--> COMPLETED
    RETRY   --claim--> PROCESSING --error--> RETRY (backoff) | FAILED (exhausted)
"""

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from finsync.config import Settings, get_settings
from finsync.core.exceptions import NoLinkedItemsError, SyncJobNotFoundError
from finsync.models.base import utcnow
from finsync.models.enums import SyncJobStatus, TriggerSource
from finsync.models.sync_job import SyncJob
from finsync.observability.metrics import MetricsRegistry
from finsync.plaid.client import UpstreamFeed
from finsync.plaid.reconciler import Reconciler
from finsync.repositories.plaid_item import PlaidItemRepository
from finsync.repositories.sync_job import SyncJobRepository
from finsync.services.audit import AuditRecord, AuditSink, NullAuditSink

logger = logging.getLogger(__name__)

LAST_ERROR_MAX_LENGTH = 2000


@dataclass(frozen=True)
class EnqueueResult:
    created: bool
    job_id: UUID
    plaid_item_id: UUID


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of one ``process_job`` call.

    ``failed`` is only set when the job reached the terminal FAILED state.
    """

    claimed: bool
    completed: bool = False
    failed: bool = False


@dataclass(frozen=True)
class SweepResult:
    queued: int
    processed: int


def build_idempotency_key(payload: Any) -> str:
    """SHA-256 hex digest of the canonical JSON encoding of ``payload``.

    Keys are sorted so that semantically equal payloads fingerprint the same
    regardless of field order.
    """
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def backoff_seconds(attempt: int, cap: int = 300) -> int:
    """Delay before retry number ``attempt``: 2, 4, 8, ... seconds, capped."""
    return min(cap, 2 ** max(1, attempt))


class SyncJobService:
    """Service layer for enqueueing and executing sync jobs."""

    def __init__(
        self,
        db: AsyncSession,
        feed: UpstreamFeed,
        settings: Settings | None = None,
        metrics: MetricsRegistry | None = None,
        audit: AuditSink | None = None,
    ):
        """Initialize sync job service.

        Args:
            db: Database session
            feed: Upstream transaction feed used by the reconciler
            settings: Application settings (cached settings when omitted)
            metrics: Metrics registry to count job outcomes into
            audit: Audit sink for terminal failures
        """
        self.db = db
        self.settings = settings or get_settings()
        self.metrics = metrics
        self.audit = audit or NullAuditSink()
        self.job_repo = SyncJobRepository(db)
        self.item_repo = PlaidItemRepository(db)
        self.reconciler = Reconciler(db, feed)

    def _count(self, name: str) -> None:
        if self.metrics is not None:
            self.metrics.increment(name)

    async def _enqueue(
        self,
        user_id: UUID,
        plaid_item_id: UUID,
        trigger_source: TriggerSource,
        payload: dict[str, Any],
    ) -> EnqueueResult:
        key = build_idempotency_key(payload)
        job_id = await self.job_repo.insert_if_absent(
            {
                "user_id": user_id,
                "plaid_item_id": plaid_item_id,
                "idempotency_key": key,
                "trigger_source": trigger_source.value,
                "status": SyncJobStatus.PENDING.value,
                "attempt_count": 0,
                "max_attempts": self.settings.sync_job_max_attempts,
                "next_run_at": utcnow(),
                "payload": payload,
            }
        )
        await self.db.commit()

        if job_id is not None:
            self._count("jobs_enqueued")
            logger.info(
                "Sync job enqueued",
                extra={"job_id": str(job_id), "plaid_item_id": str(plaid_item_id)},
            )
            return EnqueueResult(created=True, job_id=job_id, plaid_item_id=plaid_item_id)

        existing = await self.job_repo.get_by_key(key)
        if existing is None:
            # Only possible if retention cleanup removed the row in between.
            raise SyncJobNotFoundError(details={"idempotency_key": key})
        self._count("jobs_deduplicated")
        return EnqueueResult(created=False, job_id=existing.id, plaid_item_id=plaid_item_id)

    async def enqueue_webhook_sync_job(
        self, plaid_item_external_id: str, payload: dict[str, Any]
    ) -> EnqueueResult | None:
        """Record a webhook-triggered sync, deduplicated by payload fingerprint.

        Args:
            plaid_item_external_id: Upstream item id from the webhook
            payload: Full webhook body

        Returns:
            EnqueueResult, or None when no local item is linked to that id
        """
        item = await self.item_repo.get_by_upstream_id(plaid_item_external_id)
        if item is None:
            return None
        return await self._enqueue(item.user_id, item.id, TriggerSource.WEBHOOK, payload)

    async def enqueue_manual_sync_job(
        self, user_id: UUID, plaid_item_id: UUID, request_id: str
    ) -> EnqueueResult:
        """Record a user-triggered sync. Replays of the same request id dedupe.

        Raises:
            NoLinkedItemsError: The item does not belong to the user
        """
        items = await self.item_repo.list_for_user(user_id, plaid_item_id)
        if not items:
            raise NoLinkedItemsError(details={"plaid_item_id": str(plaid_item_id)})
        payload = {
            "trigger": TriggerSource.MANUAL.value,
            "user_id": str(user_id),
            "plaid_item_id": str(plaid_item_id),
            "request_id": request_id,
        }
        return await self._enqueue(user_id, plaid_item_id, TriggerSource.MANUAL, payload)

    async def process_job(self, job_id: UUID) -> ProcessResult:
        """Claim and run one job.

        Reconciler errors are recorded on the job and never raised.

        Returns:
            ProcessResult; ``claimed`` is False when the job was not due or
            another worker got it first
        """
        claimed = await self.job_repo.claim(job_id, utcnow())
        await self.db.commit()
        if claimed is None:
            return ProcessResult(claimed=False)

        attempts = claimed.attempt_count + 1
        log_extra = {
            "job_id": str(claimed.id),
            "plaid_item_id": str(claimed.plaid_item_id),
            "attempt": attempts,
        }

        try:
            await self.reconciler.run_incremental_sync(claimed.user_id, claimed.plaid_item_id)
        except Exception as exc:
            await self.db.rollback()
            return await self._record_failure(
                claimed.id, claimed.user_id, attempts, claimed.max_attempts, exc, log_extra
            )

        await self.job_repo.mark_completed(claimed.id, attempts, utcnow())
        await self.db.commit()
        self._count("jobs_completed")
        logger.info(
            "Sync job completed",
            extra={**log_extra, "status": SyncJobStatus.COMPLETED.value},
        )
        return ProcessResult(claimed=True, completed=True)

    async def _record_failure(
        self,
        job_id: UUID,
        user_id: UUID,
        attempts: int,
        max_attempts: int,
        exc: Exception,
        log_extra: dict[str, Any],
    ) -> ProcessResult:
        now = utcnow()
        final = attempts >= max_attempts
        if final:
            status = SyncJobStatus.FAILED
            next_run_at = now
        else:
            status = SyncJobStatus.RETRY
            next_run_at = now + timedelta(
                seconds=backoff_seconds(attempts, self.settings.sync_backoff_cap_seconds)
            )

        message = (str(exc) or type(exc).__name__)[:LAST_ERROR_MAX_LENGTH]
        await self.job_repo.mark_failed(job_id, attempts, status, next_run_at, message, now)
        await self.db.commit()

        logger.warning(
            "Sync job attempt failed",
            extra={**log_extra, "status": status.value, "error_type": type(exc).__name__},
        )
        if final:
            self._count("jobs_failed")
            await self.audit.record(
                AuditRecord(
                    event_type="SYNC_JOB_FAILED",
                    user_id=user_id,
                    event_source="SYNC",
                    metadata={"job_id": str(job_id), "attempts": attempts},
                )
            )
        else:
            self._count("jobs_retried")
        return ProcessResult(claimed=True, completed=False, failed=final)

    async def process_due_jobs(self, limit: int = 20, user_id: UUID | None = None) -> SweepResult:
        """Run every due job, oldest first, optionally for one user only."""
        job_ids = await self.job_repo.list_due_ids(utcnow(), limit, user_id)
        processed = 0
        for job_id in job_ids:
            result = await self.process_job(job_id)
            if result.claimed:
                processed += 1
        return SweepResult(queued=len(job_ids), processed=processed)

    async def get_job(self, job_id: UUID, user_id: UUID) -> SyncJob:
        """Get a job's current state.

        Raises:
            SyncJobNotFoundError: Unknown id or not the user's job
        """
        job = await self.job_repo.get_for_user(job_id, user_id)
        if job is None:
            raise SyncJobNotFoundError(details={"job_id": str(job_id)})
        return job

    async def cleanup_terminal_jobs(
        self, older_than_days: int = 90, user_id: UUID | None = None
    ) -> int:
        """Delete COMPLETED and FAILED jobs older than the retention window."""
        cutoff: datetime = utcnow() - timedelta(days=older_than_days)
        deleted = await self.job_repo.delete_terminal_before(cutoff, user_id)
        await self.db.commit()
        logger.info("Sync job retention cleanup deleted %d rows", deleted)
        return deleted
