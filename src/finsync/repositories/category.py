"""Category repository."""
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from finsync.models.base import utcnow
from finsync.models.category import Category
from finsync.repositories.base import BaseRepository


class CategoryRepository(BaseRepository[Category]):
    """Repository for Category model."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Category)

    async def get_for_user(self, user_id: UUID, category_id: UUID) -> Category | None:
        """Get a category only if it belongs to the user."""
        result = await self.db.execute(
            select(Category).where(Category.id == category_id, Category.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def ensure_system_category(self, user_id: UUID, name: str) -> UUID:
        """Idempotently create the named system category and return its id.

        Concurrent callers converge on the same row through the
        ``(user_id, name)`` unique key.
        """
        now = utcnow()
        stmt = self._insert().values(
            user_id=user_id,
            name=name,
            is_system=True,
            sort_order=0,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "name"],
            set_={"is_system": True, "updated_at": now},
        ).returning(Category.id)
        result = await self.db.execute(stmt)
        return result.scalar_one()
