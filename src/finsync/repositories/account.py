"""Account repository."""
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from finsync.models.account import Account
from finsync.models.base import utcnow
from finsync.repositories.base import BaseRepository
from finsync.schemas.upstream import UpstreamAccount

_REFRESHED_COLUMNS = (
    "user_id",
    "plaid_item_id",
    "name",
    "mask",
    "type",
    "subtype",
    "current_balance",
    "available_balance",
    "currency_code",
    "is_active",
)


def _decimal(value: float | None) -> Decimal | None:
    return None if value is None else Decimal(str(value))


class AccountRepository(BaseRepository[Account]):
    """Repository for Account model."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Account)

    async def map_upstream_ids(self, user_id: UUID, plaid_item_id: UUID) -> dict[str, UUID]:
        """Map upstream account ids to local account ids for one linked item."""
        result = await self.db.execute(
            select(Account.plaid_account_id, Account.id).where(
                Account.user_id == user_id,
                Account.plaid_item_id == plaid_item_id,
                Account.plaid_account_id.is_not(None),
            )
        )
        return {upstream_id: local_id for upstream_id, local_id in result.all()}

    async def upsert_from_upstream(
        self, user_id: UUID, plaid_item_id: UUID, account: UpstreamAccount
    ) -> UUID:
        """Insert or refresh an account keyed by its upstream account id."""
        values: dict[str, Any] = {
            "user_id": user_id,
            "plaid_item_id": plaid_item_id,
            "plaid_account_id": account.account_id,
            "name": account.name,
            "mask": account.mask,
            "type": account.type,
            "subtype": account.subtype,
            "current_balance": _decimal(account.balances.current),
            "available_balance": _decimal(account.balances.available),
            "currency_code": account.balances.iso_currency_code or "USD",
            "is_active": True,
        }
        stmt = self._insert().values(**values)
        set_: dict[str, Any] = {name: stmt.excluded[name] for name in _REFRESHED_COLUMNS}
        set_["updated_at"] = utcnow()
        stmt = stmt.on_conflict_do_update(
            index_elements=["plaid_account_id"], set_=set_
        ).returning(Account.id)
        result = await self.db.execute(stmt)
        return result.scalar_one()
