"""Transaction categorization request/response schemas."""

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class RecategorizeRequest(BaseModel):
    """Manually set (or clear) a transaction's category."""

    category_id: UUID | None = Field(description="New category; null clears it")
    create_rule: bool = Field(
        default=False, description="Learn a rule from this transaction"
    )


class RecategorizeResponse(BaseModel):
    transaction_id: UUID
    category_id: UUID | None
    category_source: str
    rule_created: bool
    rule_id: UUID | None = None


class ApplyRulesResponse(BaseModel):
    transaction_id: UUID
    matched: bool
    rule_id: UUID | None = None
    category_id: UUID | None = None
    category_confidence: Decimal | None = None


class BackfillRequest(BaseModel):
    limit: int = Field(default=500, ge=1, le=2000)
    include_excluded: bool = False
    dry_run: bool = False


class BackfillResponse(BaseModel):
    scanned: int
    matched: int
    updated: int
    dry_run: bool
