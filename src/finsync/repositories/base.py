"""Base repository with generic CRUD operations."""
from typing import Any, Generic, Type, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from finsync.models.base import BaseModel

T = TypeVar("T", bound=BaseModel)


class BaseRepository(Generic[T]):
    """Generic repository providing CRUD operations for any model.

    Only ``create`` and ``delete`` commit. Every other write flushes and leaves
    the transaction boundary to the calling service.
    """

    def __init__(self, db: AsyncSession, model: Type[T]):
        self.db = db
        self.model = model

    async def get_by_id(self, id: UUID) -> T | None:
        """Get a single record by ID."""
        result = await self.db.execute(select(self.model).where(self.model.id == id))
        return result.scalar_one_or_none()

    async def create(self, obj: T) -> T:
        """Create a new record."""
        self.db.add(obj)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj

    async def delete(self, id: UUID) -> bool:
        """Delete a record by ID."""
        obj = await self.get_by_id(id)
        if not obj:
            return False

        await self.db.delete(obj)
        await self.db.commit()
        return True

    def _insert(self, target: Any = None):
        """Dialect-specific INSERT supporting ON CONFLICT and RETURNING.

        Postgres is the production backend. SQLite (3.35+) is accepted so the
        test suite can run without a server.
        """
        target = self.model if target is None else target
        if self.db.get_bind().dialect.name == "sqlite":
            return sqlite.insert(target)
        return postgresql.insert(target)
