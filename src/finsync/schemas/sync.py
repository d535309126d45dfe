"""Sync and sync-job request/response schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class SyncRequest(BaseModel):
    """Optional narrowing of a sync to one linked item."""

    plaid_item_id: UUID | None = Field(
        default=None, description="Local linked item id; all items when omitted"
    )


class FullSyncRequest(SyncRequest):
    days: int = Field(default=90, ge=1, le=730, description="How many days back to fetch")


class SyncSummaryResponse(BaseModel):
    synced_items: int
    added: int
    modified: int
    removed: int


class SyncJobCreateRequest(BaseModel):
    plaid_item_id: UUID


class SyncJobEnqueueResponse(BaseModel):
    job_id: UUID
    created: bool
    claimed: bool = False
    completed: bool = False
    failed: bool = False


class SyncJobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    plaid_item_id: UUID
    trigger_source: str
    status: str
    attempt_count: int
    max_attempts: int
    next_run_at: datetime
    last_error: str | None
    created_at: datetime
    updated_at: datetime


class SweepResponse(BaseModel):
    queued: int
    processed: int


class FullSyncResponse(BaseModel):
    synced_items: int
    synced_transactions: int
    start_date: date
    end_date: date
