"""Linking a bank login: public token exchange and account import."""

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from finsync.core.exceptions import UpstreamSyncError
from finsync.core.token_crypto import encrypt_secret
from finsync.plaid.client import UpstreamFeed, UpstreamFetchError
from finsync.repositories.account import AccountRepository
from finsync.repositories.plaid_item import PlaidItemRepository
from finsync.services.audit import AuditRecord, AuditSink, NullAuditSink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkResult:
    plaid_item_id: UUID
    upstream_item_id: str
    linked_accounts: int


class ItemLinkService:
    """Service layer for linking Plaid items to users."""

    def __init__(self, db: AsyncSession, feed: UpstreamFeed, audit: AuditSink | None = None):
        """Initialize item link service.

        Args:
            db: Database session
            feed: Upstream feed used for the exchange and account lookup
            audit: Audit sink for successful links
        """
        self.db = db
        self.feed = feed
        self.audit = audit or NullAuditSink()
        self.item_repo = PlaidItemRepository(db)
        self.account_repo = AccountRepository(db)

    async def link_item(self, user_id: UUID, public_token: str) -> LinkResult:
        """Exchange a Link public token and store the item with its accounts.

        The access token is stored encrypted. The item and every account are
        written in one transaction and keyed by their upstream ids, so linking
        the same login again refreshes the rows instead of duplicating them.

        Args:
            user_id: User the item is linked to
            public_token: Short-lived token returned by Plaid Link

        Returns:
            LinkResult with the local item id and number of accounts

        Raises:
            UpstreamSyncError: The exchange or account lookup failed
        """
        try:
            exchange = await self.feed.exchange_public_token(public_token)
            accounts = await self.feed.get_accounts(exchange.access_token)
        except UpstreamFetchError as exc:
            raise UpstreamSyncError(
                str(exc), details={"upstream_code": exc.code}, error_code="LINK_001"
            ) from exc

        try:
            item_id = await self.item_repo.upsert_linked(
                user_id,
                exchange.item_id,
                encrypt_secret(exchange.access_token),
                institution_id=accounts.institution_id,
            )
            for account in accounts.accounts:
                await self.account_repo.upsert_from_upstream(user_id, item_id, account)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Plaid item linked",
            extra={"plaid_item_id": str(item_id), "user_id": str(user_id)},
        )
        await self.audit.record(
            AuditRecord(
                event_type="PLAID_ITEM_LINKED",
                user_id=user_id,
                metadata={
                    "plaid_item_id": str(item_id),
                    "linked_accounts": len(accounts.accounts),
                },
            )
        )
        return LinkResult(
            plaid_item_id=item_id,
            upstream_item_id=exchange.item_id,
            linked_accounts=len(accounts.accounts),
        )
