"""Plaid item linking endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from finsync.api.deps import get_current_user, get_item_link_service
from finsync.models.user import User
from finsync.schemas.item import ExchangePublicTokenRequest, LinkedItemResponse
from finsync.services.linking import ItemLinkService

router = APIRouter(prefix="/plaid", tags=["plaid"])


@router.post(
    "/exchange-public-token",
    response_model=LinkedItemResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Link a bank login",
    responses={
        400: {"description": "Missing or empty public token"},
        502: {"description": "Plaid rejected the exchange"},
    },
)
async def exchange_public_token(
    payload: ExchangePublicTokenRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    service: ItemLinkService = Depends(get_item_link_service),
) -> LinkedItemResponse:
    """Exchange the Link public token and import the item's accounts."""
    result = await service.link_item(current_user.id, payload.public_token)
    return LinkedItemResponse(
        plaid_item_id=result.plaid_item_id,
        item_id=result.upstream_item_id,
        linked_accounts=result.linked_accounts,
    )
