"""Inbound Plaid webhook endpoints."""

import json
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from finsync.api.deps import (
    get_audit_sink,
    get_current_user,
    get_feed,
    get_sync_job_service,
)
from finsync.config import Settings, get_settings
from finsync.core.exceptions import (
    SyncProcessingError,
    UpstreamSyncError,
    WebhookVerificationError,
)
from finsync.models.user import User
from finsync.plaid.client import UpstreamFeed
from finsync.plaid.webhook_verification import verify_plaid_webhook
from finsync.schemas.sync import SweepResponse
from finsync.schemas.webhook import PlaidWebhookPayload, WebhookResponse
from finsync.services.audit import AuditRecord, AuditSink
from finsync.sync.jobs import SyncJobService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _parse_payload(raw_body: bytes) -> tuple[dict, PlaidWebhookPayload]:
    try:
        body = json.loads(raw_body or b"null")
    except ValueError:
        raise RequestValidationError(
            [{"loc": ("body",), "msg": "Invalid JSON", "type": "json_invalid"}]
        )
    if not isinstance(body, dict):
        raise RequestValidationError(
            [{"loc": ("body",), "msg": "Expected a JSON object", "type": "dict_type"}]
        )
    try:
        return body, PlaidWebhookPayload.model_validate(body)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors())


@router.post(
    "/plaid",
    response_model=WebhookResponse,
    summary="Receive a Plaid webhook",
    responses={
        200: {"description": "Ignored webhook type or duplicate delivery"},
        202: {"description": "New sync job accepted (or item not linked)"},
        400: {"description": "Malformed payload or missing item_id"},
        401: {"description": "Signature verification failed"},
        502: {"description": "Sync processing failed"},
    },
)
async def receive_plaid_webhook(
    request: Request,
    response: Response,
    service: SyncJobService = Depends(get_sync_job_service),
    feed: UpstreamFeed = Depends(get_feed),
    audit: AuditSink = Depends(get_audit_sink),
    settings: Settings = Depends(get_settings),
) -> WebhookResponse:
    """Verify, deduplicate and immediately process a TRANSACTIONS webhook.

    Each distinct payload produces at most one sync job; redeliveries of the
    same payload answer 200 with ``duplicate=true``.
    """
    raw_body = await request.body()

    if settings.plaid_webhook_verification_enabled:
        result = await verify_plaid_webhook(
            request.headers.get("plaid-verification"),
            raw_body,
            feed.get_webhook_verification_key,
        )
        if not result.ok:
            await audit.record(
                AuditRecord(
                    event_type="WEBHOOK_VERIFICATION_FAILED",
                    event_source="WEBHOOK",
                    ip_address=request.client.host if request.client else None,
                    user_agent=request.headers.get("user-agent"),
                    request_id=getattr(request.state, "request_id", None),
                    metadata={"reason": result.reason},
                )
            )
            raise WebhookVerificationError(result.reason or "verification failed")

    body, payload = _parse_payload(raw_body)

    if payload.webhook_type != "TRANSACTIONS":
        response.status_code = status.HTTP_200_OK
        return WebhookResponse(ignored=True)

    if not payload.item_id:
        raise RequestValidationError(
            [{"loc": ("body", "item_id"), "msg": "Field required", "type": "missing"}]
        )

    try:
        enqueued = await service.enqueue_webhook_sync_job(payload.item_id, body)
        if enqueued is None:
            response.status_code = status.HTTP_202_ACCEPTED
            return WebhookResponse(item_linked=False)

        processed = await service.process_job(enqueued.job_id)
    except SyncProcessingError:
        raise
    except Exception as exc:
        logger.error(
            "Webhook processing failed",
            extra={"error_type": type(exc).__name__, "path": request.url.path},
        )
        raise UpstreamSyncError("Webhook processing failed") from exc

    response.status_code = (
        status.HTTP_202_ACCEPTED if enqueued.created else status.HTTP_200_OK
    )
    return WebhookResponse(
        duplicate=not enqueued.created,
        job_id=enqueued.job_id,
        processed=processed.claimed,
    )


@router.post("/plaid/process-due", response_model=SweepResponse)
async def process_due_for_user(
    current_user: Annotated[User, Depends(get_current_user)],
    service: SyncJobService = Depends(get_sync_job_service),
    limit: int = Query(default=20, ge=1, le=500),
) -> SweepResponse:
    """Run the current user's due sync jobs."""
    result = await service.process_due_jobs(limit=limit, user_id=current_user.id)
    return SweepResponse(queued=result.queued, processed=result.processed)
