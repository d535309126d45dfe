"""User-scoped spending category."""
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from finsync.models.base import BaseModel


class Category(BaseModel):
    """Category owned by a user.

    System categories are created from upstream category labels during sync.
    """

    __tablename__ = "categories"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_category_user_name"),)

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, name={self.name}, is_system={self.is_system})>"
