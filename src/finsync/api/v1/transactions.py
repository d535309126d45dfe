"""Transaction categorization endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends

from finsync.api.deps import get_categorization_service, get_current_user
from finsync.models.user import User
from finsync.schemas.transaction import (
    ApplyRulesResponse,
    BackfillRequest,
    BackfillResponse,
    RecategorizeRequest,
    RecategorizeResponse,
)
from finsync.services.categorization import CategorizationService

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.patch(
    "/{transaction_id}/category",
    response_model=RecategorizeResponse,
    summary="Manually set a transaction's category",
    description="""
    Sets the category with USER provenance, which later upstream refreshes
    never overwrite. With **create_rule**, an EQUALS rule is learned from the
    transaction's most identifying field unless an identical active rule
    already exists.
    """,
)
async def recategorize_transaction(
    transaction_id: UUID,
    payload: RecategorizeRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    service: CategorizationService = Depends(get_categorization_service),
) -> RecategorizeResponse:
    result = await service.recategorize(
        current_user.id, transaction_id, payload.category_id, payload.create_rule
    )
    return RecategorizeResponse(
        transaction_id=result.transaction_id,
        category_id=result.category_id,
        category_source=result.category_source,
        rule_created=result.rule_created,
        rule_id=result.rule_id,
    )


@router.post("/{transaction_id}/apply-category-rules", response_model=ApplyRulesResponse)
async def apply_category_rules(
    transaction_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: CategorizationService = Depends(get_categorization_service),
) -> ApplyRulesResponse:
    """Apply the best matching active rule to one transaction."""
    result = await service.apply_rules(current_user.id, transaction_id)
    return ApplyRulesResponse(
        transaction_id=result.transaction_id,
        matched=result.matched,
        rule_id=result.rule_id,
        category_id=result.category_id,
        category_confidence=result.category_confidence,
    )


@router.post("/backfill-category-rules", response_model=BackfillResponse)
async def backfill_category_rules(
    current_user: Annotated[User, Depends(get_current_user)],
    payload: BackfillRequest | None = None,
    service: CategorizationService = Depends(get_categorization_service),
) -> BackfillResponse:
    """Categorize uncategorized transactions with the user's active rules."""
    payload = payload or BackfillRequest()
    result = await service.backfill_rules(
        current_user.id,
        limit=payload.limit,
        include_excluded=payload.include_excluded,
        dry_run=payload.dry_run,
    )
    return BackfillResponse(
        scanned=result.scanned,
        matched=result.matched,
        updated=result.updated,
        dry_run=result.dry_run,
    )
