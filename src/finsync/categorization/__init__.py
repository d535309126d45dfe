"""Transaction categorization.

Pure, deterministic rule matching and rule learning, plus the label
normalization used for upstream-assigned system categories.
"""

from .labels import CategoryLabel, plaid_category_label
from .matcher import (
    TransactionMatchContext,
    confidence_for_rule,
    find_best_rule,
    find_best_rule_for_transaction,
)
from .rules import LearnedRuleCandidate, build_learned_rule_candidate

__all__ = [
    "CategoryLabel",
    "LearnedRuleCandidate",
    "TransactionMatchContext",
    "build_learned_rule_candidate",
    "confidence_for_rule",
    "find_best_rule",
    "find_best_rule_for_transaction",
    "plaid_category_label",
]
