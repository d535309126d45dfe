"""Transaction model, keyed by (source, external_id)."""
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from finsync.models.base import BaseModel, JSONType
from finsync.models.enums import CategorySource, TransactionSource


class Transaction(BaseModel):
    """Bank transaction mirrored from the upstream feed.

    ``category_source`` records provenance. USER and RULE categories survive
    upstream refreshes of the same external id.
    """

    __tablename__ = "transactions"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    account_id: Mapped[UUID] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    source: Mapped[str] = mapped_column(
        String(20), default=TransactionSource.PLAID.value, nullable=False
    )
    external_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    iso_currency_code: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    authorized_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    merchant_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    original_description: Mapped[str] = mapped_column(Text, nullable=False)
    mcc: Mapped[str | None] = mapped_column(String(10), nullable=True)
    pending: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_excluded: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    category_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )
    category_source: Mapped[str] = mapped_column(
        String(20), default=CategorySource.SYSTEM.value, nullable=False
    )
    category_confidence: Mapped[Decimal | None] = mapped_column(Numeric(5, 4), nullable=True)
    plaid_primary_category: Mapped[str | None] = mapped_column(String(255), nullable=True)
    plaid_detailed_category: Mapped[str | None] = mapped_column(String(255), nullable=True)
    raw_payload: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    __table_args__ = (
        UniqueConstraint("source", "external_id", name="uq_transaction_source_external_id"),
        Index("ix_transactions_user_id_category_id", "user_id", "category_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Transaction(id={self.id}, external_id={self.external_id}, "
            f"amount={self.amount}, category_source={self.category_source})>"
        )
