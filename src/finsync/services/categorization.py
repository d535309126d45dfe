"""Manual recategorization and rule application."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from finsync.categorization.matcher import (
    TransactionMatchContext,
    confidence_for_rule,
    find_best_rule,
    find_best_rule_for_transaction,
)
from finsync.categorization.rules import build_learned_rule_candidate
from finsync.core.exceptions import InvalidCategoryError, TransactionNotFoundError
from finsync.models.base import utcnow
from finsync.models.category_change_event import CategoryChangeEvent
from finsync.models.enums import CategorySource
from finsync.models.transaction import Transaction
from finsync.repositories.category import CategoryRepository
from finsync.repositories.category_rule import CategoryRuleRepository
from finsync.repositories.transaction import TransactionRepository
from finsync.services.audit import AuditRecord, AuditSink, NullAuditSink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecategorizeResult:
    transaction_id: UUID
    category_id: UUID | None
    category_source: str
    rule_created: bool
    rule_id: UUID | None = None


@dataclass(frozen=True)
class ApplyRulesResult:
    transaction_id: UUID
    matched: bool
    rule_id: UUID | None = None
    category_id: UUID | None = None
    category_confidence: Decimal | None = None


@dataclass(frozen=True)
class BackfillResult:
    scanned: int
    matched: int
    updated: int
    dry_run: bool


def match_context(txn: Transaction, account_name: str | None = None) -> TransactionMatchContext:
    return TransactionMatchContext(
        merchant_name=txn.merchant_name,
        original_description=txn.original_description,
        account_name=account_name,
        mcc=txn.mcc,
        plaid_primary_category=txn.plaid_primary_category,
        plaid_detailed_category=txn.plaid_detailed_category,
    )


class CategorizationService:
    """Service layer for category changes made by users and rules."""

    def __init__(self, db: AsyncSession, audit: AuditSink | None = None):
        """Initialize categorization service.

        Args:
            db: Database session
            audit: Audit sink for manual changes
        """
        self.db = db
        self.audit = audit or NullAuditSink()
        self.txn_repo = TransactionRepository(db)
        self.category_repo = CategoryRepository(db)
        self.rule_repo = CategoryRuleRepository(db)

    async def recategorize(
        self,
        user_id: UUID,
        transaction_id: UUID,
        category_id: UUID | None,
        create_rule: bool = False,
    ) -> RecategorizeResult:
        """Set a transaction's category by hand and optionally learn a rule.

        The category change, its history event and the learned rule are
        committed together.

        Args:
            user_id: Acting user
            transaction_id: Transaction to change
            category_id: New category, or None to clear it
            create_rule: Learn an EQUALS rule from the transaction

        Returns:
            RecategorizeResult describing the change

        Raises:
            TransactionNotFoundError: Transaction is not the user's
            InvalidCategoryError: Category is not the user's
        """
        txn = await self.txn_repo.get_for_user(user_id, transaction_id)
        if txn is None:
            raise TransactionNotFoundError(details={"transaction_id": str(transaction_id)})

        if category_id is not None:
            category = await self.category_repo.get_for_user(user_id, category_id)
            if category is None:
                raise InvalidCategoryError(details={"category_id": str(category_id)})

        old_category_id = txn.category_id
        context = match_context(txn)
        rule_id = None
        try:
            await self.txn_repo.set_category(transaction_id, category_id, CategorySource.USER)
            self.db.add(
                CategoryChangeEvent(
                    user_id=user_id,
                    transaction_id=transaction_id,
                    old_category_id=old_category_id,
                    new_category_id=category_id,
                    create_rule=create_rule,
                    changed_at=utcnow(),
                )
            )
            if create_rule and category_id is not None:
                candidate = build_learned_rule_candidate(context)
                if candidate is not None:
                    rule_id = await self.rule_repo.insert_learned_rule(
                        user_id=user_id,
                        category_id=category_id,
                        field=candidate.field,
                        operator=candidate.operator,
                        pattern=candidate.pattern,
                        priority=candidate.priority,
                        learned_from_transaction_id=transaction_id,
                    )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.audit.record(
            AuditRecord(
                event_type="TRANSACTION_RECATEGORIZED",
                user_id=user_id,
                metadata={
                    "transaction_id": str(transaction_id),
                    "category_id": str(category_id) if category_id else None,
                    "rule_created": rule_id is not None,
                },
            )
        )
        return RecategorizeResult(
            transaction_id=transaction_id,
            category_id=category_id,
            category_source=CategorySource.USER.value,
            rule_created=rule_id is not None,
            rule_id=rule_id,
        )

    async def apply_rules(self, user_id: UUID, transaction_id: UUID) -> ApplyRulesResult:
        """Apply the user's best matching rule to one transaction.

        Raises:
            TransactionNotFoundError: Transaction is not the user's
        """
        row = await self.txn_repo.get_with_account_name(user_id, transaction_id)
        if row is None:
            raise TransactionNotFoundError(details={"transaction_id": str(transaction_id)})
        txn, account_name = row

        rule = await find_best_rule_for_transaction(
            self.db, match_context(txn, account_name), user_id
        )
        if rule is None:
            return ApplyRulesResult(transaction_id=transaction_id, matched=False)

        confidence = Decimal(str(confidence_for_rule(rule)))
        await self.txn_repo.set_category(
            transaction_id, rule.category_id, CategorySource.RULE, confidence
        )
        await self.db.commit()
        return ApplyRulesResult(
            transaction_id=transaction_id,
            matched=True,
            rule_id=rule.id,
            category_id=rule.category_id,
            category_confidence=confidence,
        )

    async def backfill_rules(
        self,
        user_id: UUID,
        limit: int = 500,
        include_excluded: bool = False,
        dry_run: bool = False,
    ) -> BackfillResult:
        """Categorize uncategorized transactions from one snapshot of rules.

        Updates are conditional on the row still being uncategorized, so a
        concurrent manual change is never overwritten.
        """
        candidates = await self.txn_repo.list_uncategorized(user_id, limit, include_excluded)
        rules = await self.rule_repo.list_active(user_id)

        matched = updated = 0
        for txn, account_name in candidates:
            rule = find_best_rule(rules, match_context(txn, account_name))
            if rule is None:
                continue
            matched += 1
            if dry_run:
                continue
            confidence = Decimal(str(confidence_for_rule(rule)))
            if await self.txn_repo.set_category(
                txn.id,
                rule.category_id,
                CategorySource.RULE,
                confidence,
                only_if_uncategorized=True,
            ):
                updated += 1

        if not dry_run:
            await self.db.commit()
        logger.info(
            "Rule backfill finished",
            extra={"user_id": str(user_id), "status": "dry_run" if dry_run else "applied"},
        )
        return BackfillResult(
            scanned=len(candidates), matched=matched, updated=updated, dry_run=dry_run
        )
