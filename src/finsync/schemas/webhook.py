"""Inbound Plaid webhook schemas."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict


class PlaidWebhookPayload(BaseModel):
    """The webhook fields we act on; everything else is kept for fingerprinting."""

    model_config = ConfigDict(extra="allow")

    webhook_type: str
    webhook_code: str | None = None
    item_id: str | None = None
    new_transactions: int | None = None


class WebhookResponse(BaseModel):
    received: bool = True
    ignored: bool = False
    item_linked: bool = True
    duplicate: bool = False
    job_id: UUID | None = None
    processed: bool = False
