"""Linked item repository: lookup and cursor bookkeeping."""
from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from finsync.models.base import utcnow
from finsync.models.plaid_item import PlaidItem
from finsync.repositories.base import BaseRepository


class PlaidItemRepository(BaseRepository[PlaidItem]):
    """Repository for PlaidItem with sync cursor updates."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, PlaidItem)

    async def list_for_user(
        self, user_id: UUID, plaid_item_id: UUID | None = None
    ) -> list[PlaidItem]:
        """Get a user's linked items, optionally narrowed to one."""
        query = select(PlaidItem).where(PlaidItem.user_id == user_id)
        if plaid_item_id is not None:
            query = query.where(PlaidItem.id == plaid_item_id)
        result = await self.db.execute(
            query.order_by(PlaidItem.created_at, PlaidItem.id).execution_options(
                populate_existing=True
            )
        )
        return list(result.scalars().all())

    async def get_by_upstream_id(self, upstream_item_id: str) -> PlaidItem | None:
        """Get a linked item by the upstream provider's item id."""
        result = await self.db.execute(
            select(PlaidItem).where(PlaidItem.plaid_item_id == upstream_item_id)
        )
        return result.scalar_one_or_none()

    async def reset_cursor(self, item_id: UUID) -> None:
        """Clear the stored cursor so the next page loop starts from scratch."""
        await self.db.execute(
            update(PlaidItem)
            .where(PlaidItem.id == item_id)
            .values(plaid_cursor=None, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )

    async def mark_synced(
        self, item_id: UUID, synced_at: datetime, cursor: str | None = None, set_cursor: bool = True
    ) -> None:
        """Record a finished sync, storing the new cursor when ``set_cursor``."""
        values: dict = {"last_synced_at": synced_at, "updated_at": synced_at}
        if set_cursor:
            values["plaid_cursor"] = cursor
        await self.db.execute(
            update(PlaidItem)
            .where(PlaidItem.id == item_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    async def upsert_linked(
        self,
        user_id: UUID,
        upstream_item_id: str,
        access_token_encrypted: str,
        institution_id: str | None = None,
    ) -> UUID:
        """Insert or re-link an item keyed by its upstream id.

        Re-linking replaces the owner and access token and keeps the stored
        cursor, so the next incremental sync resumes where it left off.

        Returns:
            Local id of the item
        """
        now = utcnow()
        stmt = self._insert().values(
            user_id=user_id,
            plaid_item_id=upstream_item_id,
            access_token_encrypted=access_token_encrypted,
            institution_id=institution_id,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["plaid_item_id"],
            set_={
                "user_id": stmt.excluded.user_id,
                "access_token_encrypted": stmt.excluded.access_token_encrypted,
                "institution_id": stmt.excluded.institution_id,
                "updated_at": now,
            },
        ).returning(PlaidItem.id)
        result = await self.db.execute(stmt)
        return result.scalar_one()
