"""User-defined or learned categorization rules."""
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from finsync.models.base import BaseModel
from finsync.models.enums import RuleCreator


class CategoryRule(BaseModel):
    """Predicate (field, operator, pattern) that assigns a category.

    Identical active rules are prevented by the learner's conditional insert,
    not by a constraint, so an inactive duplicate can coexist with an active one.
    """

    __tablename__ = "category_rules"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    category_id: Mapped[UUID] = mapped_column(
        ForeignKey("categories.id", ondelete="CASCADE"), nullable=False
    )
    field: Mapped[str] = mapped_column(String(50), nullable=False)
    operator: Mapped[str] = mapped_column(String(20), nullable=False)
    pattern: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=100, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    learned_from_transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("transactions.id", ondelete="SET NULL"), nullable=True
    )
    created_by: Mapped[str] = mapped_column(
        String(20), default=RuleCreator.USER.value, nullable=False
    )

    __table_args__ = (
        Index("ix_category_rules_user_active_priority", "user_id", "is_active", "priority"),
        Index("ix_category_rules_user_field", "user_id", "field"),
    )

    def __repr__(self) -> str:
        return (
            f"<CategoryRule(id={self.id}, field={self.field}, operator={self.operator}, "
            f"pattern={self.pattern!r}, priority={self.priority})>"
        )
