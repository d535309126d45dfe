"""Item linking request/response schemas."""

from uuid import UUID

from pydantic import BaseModel, Field


class ExchangePublicTokenRequest(BaseModel):
    public_token: str = Field(min_length=1, description="Token returned by Plaid Link")


class LinkedItemResponse(BaseModel):
    plaid_item_id: UUID = Field(description="Local linked item id")
    item_id: str = Field(description="Upstream item id")
    linked_accounts: int
