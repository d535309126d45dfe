"""Manual sync and sync job endpoints."""

import uuid
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response, status

from finsync.api.deps import (
    get_current_user,
    get_reconciler,
    get_sync_job_service,
    require_sweep_token,
)
from finsync.models.user import User
from finsync.plaid.reconciler import Reconciler
from finsync.schemas.sync import (
    FullSyncRequest,
    FullSyncResponse,
    SweepResponse,
    SyncJobCreateRequest,
    SyncJobEnqueueResponse,
    SyncJobResponse,
    SyncRequest,
    SyncSummaryResponse,
)
from finsync.sync.jobs import SyncJobService

router = APIRouter(prefix="/sync", tags=["sync"])


@router.post(
    "/incremental",
    response_model=SyncSummaryResponse,
    summary="Run an incremental sync now",
    responses={404: {"description": "No linked items"}, 502: {"description": "Upstream failure"}},
)
async def run_incremental_sync(
    current_user: Annotated[User, Depends(get_current_user)],
    body: SyncRequest | None = None,
    reconciler: Reconciler = Depends(get_reconciler),
) -> SyncSummaryResponse:
    """Walk the change feed for the user's linked items from their stored cursors."""
    plaid_item_id = body.plaid_item_id if body else None
    summary = await reconciler.run_incremental_sync(current_user.id, plaid_item_id)
    return SyncSummaryResponse(
        synced_items=summary.synced_items,
        added=summary.added,
        modified=summary.modified,
        removed=summary.removed,
    )


@router.post("/full", response_model=FullSyncResponse, summary="Re-fetch a date range")
async def run_full_sync(
    current_user: Annotated[User, Depends(get_current_user)],
    body: FullSyncRequest | None = None,
    reconciler: Reconciler = Depends(get_reconciler),
) -> FullSyncResponse:
    """Fetch the last ``days`` days of transactions without touching the cursor."""
    body = body or FullSyncRequest()
    summary = await reconciler.run_full_sync(current_user.id, body.plaid_item_id, body.days)
    return FullSyncResponse(
        synced_items=summary.synced_items,
        synced_transactions=summary.synced_transactions,
        start_date=summary.start_date,
        end_date=summary.end_date,
    )


@router.post("/jobs", response_model=SyncJobEnqueueResponse)
async def create_sync_job(
    payload: SyncJobCreateRequest,
    request: Request,
    response: Response,
    current_user: Annotated[User, Depends(get_current_user)],
    service: SyncJobService = Depends(get_sync_job_service),
) -> SyncJobEnqueueResponse:
    """Enqueue a manual sync job for one item and process it immediately."""
    request_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
    enqueued = await service.enqueue_manual_sync_job(
        current_user.id, payload.plaid_item_id, request_id
    )
    result = await service.process_job(enqueued.job_id)
    response.status_code = status.HTTP_202_ACCEPTED if enqueued.created else status.HTTP_200_OK
    return SyncJobEnqueueResponse(
        job_id=enqueued.job_id,
        created=enqueued.created,
        claimed=result.claimed,
        completed=result.completed,
        failed=result.failed,
    )


@router.get("/jobs/{job_id}", response_model=SyncJobResponse)
async def get_sync_job(
    job_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: SyncJobService = Depends(get_sync_job_service),
) -> SyncJobResponse:
    """Get a sync job's status, attempts and last error."""
    job = await service.get_job(job_id, current_user.id)
    return SyncJobResponse.model_validate(job)


@router.post(
    "/process-due",
    response_model=SweepResponse,
    dependencies=[Depends(require_sweep_token)],
    summary="Operator sweep of every user's due jobs",
)
async def process_due_jobs(
    service: SyncJobService = Depends(get_sync_job_service),
    limit: int = Query(default=20, ge=1, le=500),
) -> SweepResponse:
    result = await service.process_due_jobs(limit=limit)
    return SweepResponse(queued=result.queued, processed=result.processed)
