"""Linked Plaid item, carrying the sync cursor for its transaction feed."""
from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from finsync.models.base import BaseModel


class PlaidItem(BaseModel):
    """One linked institution login for a user.

    ``plaid_cursor`` is only written after a complete page loop, or cleared
    when the upstream feed rejects it.
    """

    __tablename__ = "plaid_items"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    plaid_item_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    access_token_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    institution_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    institution_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    plaid_cursor: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<PlaidItem(id={self.id}, plaid_item_id={self.plaid_item_id})>"
