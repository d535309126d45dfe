"""User model for data ownership."""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from finsync.models.base import BaseModel


class User(BaseModel):
    """User owning linked items, transactions, categories and rules.

    Credentials live with the auth service; this row only anchors ownership.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, is_active={self.is_active})>"
