"""Rule learning from manual recategorizations.

When a user recategorizes a transaction and asks for a rule, we derive a
single EQUALS rule from the most identifying field that has a value.
"""

from __future__ import annotations

from dataclasses import dataclass

from finsync.categorization.matcher import TransactionMatchContext, normalize
from finsync.models.enums import RuleField, RuleOperator

# Ordering matters: the first non-empty field wins.
LEARNED_RULE_FIELDS: list[tuple[RuleField, str, int]] = [
    (RuleField.MERCHANT_NAME, "merchant_name", 10),
    (RuleField.ORIGINAL_DESCRIPTION, "original_description", 20),
    (RuleField.MCC, "mcc", 30),
    (RuleField.PLAID_DETAILED_CATEGORY, "plaid_detailed_category", 40),
    (RuleField.PLAID_PRIMARY_CATEGORY, "plaid_primary_category", 50),
]


@dataclass(frozen=True)
class LearnedRuleCandidate:
    field: RuleField
    operator: RuleOperator
    pattern: str
    priority: int


def build_learned_rule_candidate(
    source: TransactionMatchContext,
) -> LearnedRuleCandidate | None:
    """Build at most one EQUALS rule candidate from a transaction.

    Args:
        source: Fields of the recategorized transaction

    Returns:
        Candidate with the normalized pattern, or None if every field is empty
    """
    for field, attr, priority in LEARNED_RULE_FIELDS:
        pattern = normalize(getattr(source, attr))
        if pattern:
            return LearnedRuleCandidate(
                field=field,
                operator=RuleOperator.EQUALS,
                pattern=pattern,
                priority=priority,
            )
    return None
