"""Transaction repository: provenance-aware upserts and category updates."""
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import case, delete, null, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from finsync.models.account import Account
from finsync.models.base import utcnow
from finsync.models.enums import PROTECTED_CATEGORY_SOURCES, CategorySource
from finsync.models.transaction import Transaction
from finsync.repositories.base import BaseRepository

# Columns refreshed from upstream on every upsert.
_REFRESHED_COLUMNS = (
    "user_id",
    "account_id",
    "amount",
    "iso_currency_code",
    "transaction_date",
    "authorized_date",
    "merchant_name",
    "original_description",
    "mcc",
    "pending",
    "plaid_primary_category",
    "plaid_detailed_category",
    "raw_payload",
)


class TransactionRepository(BaseRepository[Transaction]):
    """Repository for Transaction model."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Transaction)

    async def get_for_user(self, user_id: UUID, transaction_id: UUID) -> Transaction | None:
        """Get a transaction only if it belongs to the user."""
        result = await self.db.execute(
            select(Transaction)
            .where(Transaction.id == transaction_id, Transaction.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_with_account_name(
        self, user_id: UUID, transaction_id: UUID
    ) -> tuple[Transaction, str | None] | None:
        """Get a user's transaction together with its account name."""
        result = await self.db.execute(
            select(Transaction, Account.name)
            .outerjoin(Account, Account.id == Transaction.account_id)
            .where(Transaction.id == transaction_id, Transaction.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]

    async def list_uncategorized(
        self, user_id: UUID, limit: int = 500, include_excluded: bool = False
    ) -> list[tuple[Transaction, str | None]]:
        """Get uncategorized transactions, newest first, with account names."""
        query = (
            select(Transaction, Account.name)
            .outerjoin(Account, Account.id == Transaction.account_id)
            .where(Transaction.user_id == user_id, Transaction.category_id.is_(None))
        )
        if not include_excluded:
            query = query.where(Transaction.is_excluded.is_(False))
        result = await self.db.execute(
            query.order_by(Transaction.transaction_date.desc(), Transaction.id.desc()).limit(limit)
        )
        return [(txn, account_name) for txn, account_name in result.all()]

    async def upsert_from_upstream(self, values: dict[str, Any]) -> UUID:
        """Insert or refresh a transaction keyed by ``(source, external_id)``.

        On conflict the descriptive fields are refreshed. Category, provenance
        and confidence are kept when the stored provenance is USER or RULE;
        otherwise the incoming system category replaces them.

        Args:
            values: Column values; must include ``source``, ``external_id``
                and ``category_id``

        Returns:
            Id of the inserted or updated row
        """
        now = utcnow()
        stmt = self._insert().values(
            **values,
            category_source=CategorySource.SYSTEM.value,
            category_confidence=None,
        )
        protected = Transaction.category_source.in_(PROTECTED_CATEGORY_SOURCES)
        set_: dict[str, Any] = {name: stmt.excluded[name] for name in _REFRESHED_COLUMNS}
        set_.update(
            category_id=case(
                (protected, Transaction.category_id), else_=stmt.excluded.category_id
            ),
            category_source=case(
                (protected, Transaction.category_source),
                else_=CategorySource.SYSTEM.value,
            ),
            category_confidence=case(
                (protected, Transaction.category_confidence), else_=null()
            ),
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["source", "external_id"], set_=set_
        ).returning(Transaction.id)
        result = await self.db.execute(stmt)
        return result.scalar_one()

    async def delete_by_external_ids(
        self, user_id: UUID, source: str, external_ids: list[str]
    ) -> int:
        """Hard-delete a user's transactions by upstream id."""
        if not external_ids:
            return 0
        result = await self.db.execute(
            delete(Transaction)
            .where(
                Transaction.user_id == user_id,
                Transaction.source == source,
                Transaction.external_id.in_(external_ids),
            )
            .returning(Transaction.id)
            .execution_options(synchronize_session=False)
        )
        return len(result.all())

    async def set_category(
        self,
        transaction_id: UUID,
        category_id: UUID | None,
        category_source: CategorySource,
        confidence: Decimal | None = None,
        only_if_uncategorized: bool = False,
    ) -> bool:
        """Set a transaction's category and provenance.

        Args:
            transaction_id: Transaction to update
            category_id: New category, or None to clear it
            category_source: Provenance to record
            confidence: Rule confidence, None for manual changes
            only_if_uncategorized: Skip rows that gained a category meanwhile

        Returns:
            True if a row was updated
        """
        query = update(Transaction).where(Transaction.id == transaction_id)
        if only_if_uncategorized:
            query = query.where(Transaction.category_id.is_(None))
        result = await self.db.execute(
            query.values(
                category_id=category_id,
                category_source=category_source.value,
                category_confidence=confidence,
                updated_at=utcnow(),
            )
            .returning(Transaction.id)
            .execution_options(synchronize_session=False)
        )
        return result.first() is not None
