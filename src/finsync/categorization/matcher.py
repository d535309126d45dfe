"""Deterministic rule matching.

Given a transaction and a snapshot of active rules, pick exactly one winning
rule. The ordering is total, so the same inputs always yield the same rule
regardless of how the rules were loaded.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from finsync.models.category_rule import CategoryRule
from finsync.models.enums import RuleField, RuleOperator
from finsync.repositories.category_rule import CategoryRuleRepository

_SPECIFICITY_BASE = {
    RuleOperator.EQUALS.value: 400,
    RuleOperator.STARTS_WITH.value: 300,
    RuleOperator.ENDS_WITH.value: 300,
    RuleOperator.CONTAINS.value: 200,
    RuleOperator.REGEX.value: 100,
}

_CONFIDENCE_BASE = {
    RuleOperator.EQUALS.value: 0.94,
    RuleOperator.STARTS_WITH.value: 0.88,
    RuleOperator.ENDS_WITH.value: 0.86,
    RuleOperator.CONTAINS.value: 0.80,
    RuleOperator.REGEX.value: 0.76,
}

_MIN_CONFIDENCE = 0.55
_MAX_CONFIDENCE = 0.99

_FAR_FUTURE = datetime.max


@dataclass(frozen=True)
class TransactionMatchContext:
    """Transaction fields that rules can test."""

    merchant_name: str | None = None
    original_description: str | None = None
    account_name: str | None = None
    mcc: str | None = None
    plaid_primary_category: str | None = None
    plaid_detailed_category: str | None = None

    def value_for(self, field: str) -> str:
        attr = _FIELD_ATTRS.get(_enum_value(field))
        if attr is None:
            return ""
        return normalize(getattr(self, attr))


_FIELD_ATTRS = {
    RuleField.MERCHANT_NAME.value: "merchant_name",
    RuleField.ORIGINAL_DESCRIPTION.value: "original_description",
    RuleField.ACCOUNT_NAME.value: "account_name",
    RuleField.MCC.value: "mcc",
    RuleField.PLAID_PRIMARY_CATEGORY.value: "plaid_primary_category",
    RuleField.PLAID_DETAILED_CATEGORY.value: "plaid_detailed_category",
}


def normalize(value: str | None) -> str:
    return (value or "").strip().lower()


def _enum_value(value: Any) -> str:
    return getattr(value, "value", value)


@lru_cache(maxsize=512)
def _compile(pattern: str) -> re.Pattern[str] | None:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error:
        return None


def matches_rule(rule: Any, context: TransactionMatchContext) -> bool:
    """Check one rule against a transaction. Never raises."""
    value = context.value_for(rule.field)
    pattern = normalize(rule.pattern)
    if not value or not pattern:
        return False

    operator = _enum_value(rule.operator)
    if operator == RuleOperator.EQUALS.value:
        return value == pattern
    if operator == RuleOperator.CONTAINS.value:
        return pattern in value
    if operator == RuleOperator.STARTS_WITH.value:
        return value.startswith(pattern)
    if operator == RuleOperator.ENDS_WITH.value:
        return value.endswith(pattern)
    if operator == RuleOperator.REGEX.value:
        compiled = _compile(rule.pattern)
        return compiled is not None and compiled.search(value) is not None
    return False


def specificity_score(rule: Any) -> int:
    """Operator weight plus pattern length; higher is more specific."""
    return _SPECIFICITY_BASE.get(_enum_value(rule.operator), 0) + len(rule.pattern or "")


def _created_key(created_at: datetime | None) -> datetime:
    if created_at is None:
        return _FAR_FUTURE
    if created_at.tzinfo is not None:
        return created_at.astimezone(timezone.utc).replace(tzinfo=None)
    return created_at


def _sort_key(rule: Any) -> tuple:
    return (
        rule.priority,
        -specificity_score(rule),
        _created_key(rule.created_at),
        str(rule.id),
    )


def find_best_rule(
    rules: Iterable[Any], context: TransactionMatchContext
) -> Any | None:
    """Return the winning rule for a transaction, or None.

    Matches are ordered by lowest priority, then highest specificity, then
    earliest creation, then lowest id.

    Args:
        rules: Snapshot of active rules (``CategoryRule`` or any object with
            the same attributes)
        context: Transaction fields to test

    Returns:
        The best matching rule, or None when nothing matches
    """
    matches = [rule for rule in rules if matches_rule(rule, context)]
    if not matches:
        return None
    return min(matches, key=_sort_key)


def confidence_for_rule(rule: Any) -> float:
    """Informational confidence for a rule-assigned category."""
    base = _CONFIDENCE_BASE.get(_enum_value(rule.operator), _MIN_CONFIDENCE)
    penalty = min(0.2, max(0.0, (rule.priority - 10) * 0.002))
    return max(_MIN_CONFIDENCE, min(_MAX_CONFIDENCE, round(base - penalty, 4)))


async def find_best_rule_for_transaction(
    db: AsyncSession, context: TransactionMatchContext, user_id: UUID
) -> CategoryRule | None:
    """Load the user's active rules and pick the winner for one transaction."""
    rules = await CategoryRuleRepository(db).list_active(user_id)
    return find_best_rule(rules, context)
