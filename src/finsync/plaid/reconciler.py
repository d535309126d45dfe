"""Reconciliation of the upstream transaction feed into local storage.

Incremental sync walks the cursor-paginated change feed; full sync walks the
offset-paginated date-range feed. Both write through the same upsert path,
which never overwrites a USER or RULE category.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from finsync.categorization.labels import plaid_category_label
from finsync.core.exceptions import CursorDriftError, NoLinkedItemsError, UpstreamSyncError
from finsync.core.token_crypto import decrypt_secret
from finsync.models.base import utcnow
from finsync.models.enums import TransactionSource
from finsync.models.plaid_item import PlaidItem
from finsync.plaid.client import UpstreamFeed, UpstreamFetchError
from finsync.repositories.account import AccountRepository
from finsync.repositories.category import CategoryRepository
from finsync.repositories.plaid_item import PlaidItemRepository
from finsync.repositories.transaction import TransactionRepository
from finsync.schemas.upstream import SyncPage, UpstreamTransaction

logger = logging.getLogger(__name__)

FULL_SYNC_PAGE_SIZE = 500


@dataclass(frozen=True)
class SyncSummary:
    synced_items: int
    added: int
    modified: int
    removed: int


@dataclass(frozen=True)
class FullSyncSummary:
    synced_items: int
    synced_transactions: int
    start_date: date
    end_date: date


class Reconciler:
    """Applies upstream feed pages to the local transaction store.

    Each page is committed as soon as it is applied, so a crash mid-loop
    leaves earlier pages in place and the stored cursor untouched.
    """

    def __init__(self, db: AsyncSession, feed: UpstreamFeed):
        """Initialize reconciler.

        Args:
            db: Database session
            feed: Upstream transaction feed
        """
        self.db = db
        self.feed = feed
        self.item_repo = PlaidItemRepository(db)
        self.account_repo = AccountRepository(db)
        self.category_repo = CategoryRepository(db)
        self.txn_repo = TransactionRepository(db)

    async def _load_items(self, user_id: UUID, plaid_item_id: UUID | None) -> list[PlaidItem]:
        items = await self.item_repo.list_for_user(user_id, plaid_item_id)
        if not items:
            raise NoLinkedItemsError(
                details={"user_id": str(user_id), "plaid_item_id": str(plaid_item_id)}
            )
        return items

    async def run_incremental_sync(
        self, user_id: UUID, plaid_item_id: UUID | None = None
    ) -> SyncSummary:
        """Walk the change feed from each item's stored cursor.

        Args:
            user_id: Owner of the linked items
            plaid_item_id: Local id of one item to sync; all items when None

        Returns:
            Counts of items synced and records added, modified and removed

        Raises:
            NoLinkedItemsError: User has no matching linked item
            UpstreamSyncError: Feed failed with no cursor to reset
            CursorDriftError: Feed failed again after the cursor reset
        """
        items = await self._load_items(user_id, plaid_item_id)

        added = modified = removed = 0
        for item in items:
            counts = await self._sync_item(item)
            added += counts[0]
            modified += counts[1]
            removed += counts[2]

        return SyncSummary(
            synced_items=len(items), added=added, modified=modified, removed=removed
        )

    async def run_for_upstream_item(self, plaid_item_external_id: str) -> SyncSummary | None:
        """Sync the item with the given upstream id; None when it is not linked."""
        item = await self.item_repo.get_by_upstream_id(plaid_item_external_id)
        if item is None:
            return None
        return await self.run_incremental_sync(item.user_id, item.id)

    async def _fetch_page(
        self, item: PlaidItem, access_token: str, cursor: str | None, drift_reset_used: bool
    ) -> tuple[SyncPage, bool]:
        try:
            return await self.feed.sync_transactions(access_token, cursor), drift_reset_used
        except UpstreamFetchError as exc:
            if not cursor:
                raise UpstreamSyncError(
                    str(exc), details={"plaid_item_id": str(item.id), "upstream_code": exc.code}
                ) from exc
            if drift_reset_used:
                raise CursorDriftError(
                    str(exc), details={"plaid_item_id": str(item.id), "upstream_code": exc.code}
                ) from exc
            first_error = exc

        logger.warning(
            "Sync cursor rejected, restarting from the beginning",
            extra={"plaid_item_id": str(item.id), "error_code": first_error.code or "PLAID_ERROR"},
        )
        await self.item_repo.reset_cursor(item.id)
        await self.db.commit()

        try:
            return await self.feed.sync_transactions(access_token, None), True
        except UpstreamFetchError as exc:
            raise CursorDriftError(
                str(exc), details={"plaid_item_id": str(item.id), "upstream_code": exc.code}
            ) from exc

    async def _sync_item(self, item: PlaidItem) -> tuple[int, int, int]:
        access_token = decrypt_secret(item.access_token_encrypted)
        account_map = await self.account_repo.map_upstream_ids(item.user_id, item.id)

        cursor = item.plaid_cursor
        drift_reset_used = False
        added = modified = removed = 0
        has_more = True

        while has_more:
            page, drift_reset_used = await self._fetch_page(
                item, access_token, cursor, drift_reset_used
            )

            for txn in page.added:
                if await self._upsert(item.user_id, account_map, txn):
                    added += 1
            for txn in page.modified:
                if await self._upsert(item.user_id, account_map, txn):
                    modified += 1
            await self.txn_repo.delete_by_external_ids(
                item.user_id,
                TransactionSource.PLAID.value,
                [r.transaction_id for r in page.removed],
            )
            removed += len(page.removed)
            await self.db.commit()

            cursor = page.next_cursor
            has_more = page.has_more

        await self.item_repo.mark_synced(item.id, utcnow(), cursor=cursor)
        await self.db.commit()

        logger.info(
            "Incremental sync finished",
            extra={"plaid_item_id": str(item.id), "user_id": str(item.user_id)},
        )
        return added, modified, removed

    async def run_full_sync(
        self, user_id: UUID, plaid_item_id: UUID | None = None, days: int = 90
    ) -> FullSyncSummary:
        """Fetch every transaction in the last ``days`` days and upsert it.

        The stored cursor is left untouched.
        """
        items = await self._load_items(user_id, plaid_item_id)
        end_date = utcnow().date()
        start_date = end_date - timedelta(days=days)

        synced = 0
        for item in items:
            access_token = decrypt_secret(item.access_token_encrypted)
            account_map = await self.account_repo.map_upstream_ids(item.user_id, item.id)
            offset = 0
            while True:
                try:
                    page = await self.feed.get_transactions(
                        access_token, start_date, end_date, FULL_SYNC_PAGE_SIZE, offset
                    )
                except UpstreamFetchError as exc:
                    raise UpstreamSyncError(
                        str(exc), details={"plaid_item_id": str(item.id), "upstream_code": exc.code}
                    ) from exc

                for txn in page.transactions:
                    if await self._upsert(item.user_id, account_map, txn):
                        synced += 1
                await self.db.commit()

                offset += len(page.transactions)
                if not page.transactions or offset >= page.total_transactions:
                    break

            await self.item_repo.mark_synced(item.id, utcnow(), set_cursor=False)
            await self.db.commit()

        return FullSyncSummary(
            synced_items=len(items),
            synced_transactions=synced,
            start_date=start_date,
            end_date=end_date,
        )

    async def _upsert(
        self, user_id: UUID, account_map: dict[str, UUID], txn: UpstreamTransaction
    ) -> bool:
        """Upsert one upstream record. Returns False when its account is unknown."""
        account_id = account_map.get(txn.account_id)
        if account_id is None:
            logger.debug("Skipping transaction for unmapped account")
            return False

        category_id = None
        label = plaid_category_label(txn.detailed_category, txn.primary_category)
        if label:
            category_id = await self.category_repo.ensure_system_category(user_id, label)

        values: dict[str, Any] = {
            "user_id": user_id,
            "account_id": account_id,
            "source": TransactionSource.PLAID.value,
            "external_id": txn.transaction_id,
            "amount": Decimal(str(txn.amount)),
            "iso_currency_code": txn.iso_currency_code or "USD",
            "transaction_date": txn.date,
            "authorized_date": txn.authorized_date,
            "merchant_name": txn.merchant_name,
            "original_description": txn.name,
            "mcc": txn.mcc,
            "pending": txn.pending,
            "is_excluded": False,
            "category_id": category_id,
            "plaid_primary_category": txn.primary_category,
            "plaid_detailed_category": txn.detailed_category,
            "raw_payload": txn.model_dump(mode="json"),
        }
        await self.txn_repo.upsert_from_upstream(values)
        return True
