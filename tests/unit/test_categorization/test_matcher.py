"""Unit tests for deterministic rule matching."""

import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import pytest

from finsync.categorization.matcher import (
    TransactionMatchContext,
    confidence_for_rule,
    find_best_rule,
    matches_rule,
    specificity_score,
)

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


@dataclass
class FakeRule:
    field: str
    operator: str
    pattern: str
    priority: int = 100
    created_at: datetime = BASE_TIME
    id: UUID = field(default_factory=uuid4)
    category_id: UUID = field(default_factory=uuid4)


@pytest.fixture
def coffee_context() -> TransactionMatchContext:
    return TransactionMatchContext(
        merchant_name="Starbucks",
        original_description="STARBUCKS STORE 1234 SEATTLE",
        account_name="Everyday Checking",
        mcc="5814",
        plaid_primary_category="FOOD_AND_DRINK",
        plaid_detailed_category="FOOD_AND_DRINK_COFFEE",
    )


class TestMatchesRule:
    """Operator semantics on normalized values."""

    def test_equals_is_case_and_whitespace_insensitive(self, coffee_context):
        rule = FakeRule("MERCHANT_NAME", "EQUALS", "  STARBUCKS ")
        assert matches_rule(rule, coffee_context)

    def test_contains(self, coffee_context):
        assert matches_rule(FakeRule("ORIGINAL_DESCRIPTION", "CONTAINS", "store 12"), coffee_context)
        assert not matches_rule(FakeRule("ORIGINAL_DESCRIPTION", "CONTAINS", "dunkin"), coffee_context)

    def test_starts_with_and_ends_with(self, coffee_context):
        assert matches_rule(FakeRule("ORIGINAL_DESCRIPTION", "STARTS_WITH", "starbucks"), coffee_context)
        assert matches_rule(FakeRule("ORIGINAL_DESCRIPTION", "ENDS_WITH", "seattle"), coffee_context)
        assert not matches_rule(FakeRule("ORIGINAL_DESCRIPTION", "ENDS_WITH", "starbucks"), coffee_context)

    def test_regex_is_case_insensitive(self, coffee_context):
        rule = FakeRule("ORIGINAL_DESCRIPTION", "REGEX", r"^STARBUCKS\s+STORE\s+\d+")
        assert matches_rule(rule, coffee_context)

    def test_invalid_regex_never_matches(self, coffee_context):
        rule = FakeRule("ORIGINAL_DESCRIPTION", "REGEX", "starbucks(")
        assert matches_rule(rule, coffee_context) is False

    def test_empty_field_value_never_matches(self):
        context = TransactionMatchContext(merchant_name="   ")
        assert not matches_rule(FakeRule("MERCHANT_NAME", "CONTAINS", "a"), context)

    def test_empty_pattern_never_matches(self, coffee_context):
        assert not matches_rule(FakeRule("MERCHANT_NAME", "CONTAINS", "  "), coffee_context)

    def test_unknown_operator_never_matches(self, coffee_context):
        assert not matches_rule(FakeRule("MERCHANT_NAME", "FUZZY", "starbucks"), coffee_context)

    def test_every_field_is_addressable(self, coffee_context):
        assert matches_rule(FakeRule("ACCOUNT_NAME", "EQUALS", "everyday checking"), coffee_context)
        assert matches_rule(FakeRule("MCC", "EQUALS", "5814"), coffee_context)
        assert matches_rule(FakeRule("PLAID_PRIMARY_CATEGORY", "EQUALS", "food_and_drink"), coffee_context)
        assert matches_rule(
            FakeRule("PLAID_DETAILED_CATEGORY", "ENDS_WITH", "_coffee"), coffee_context
        )


class TestFindBestRule:
    """Total ordering: priority, specificity, creation time, id."""

    def test_no_match_returns_none(self, coffee_context):
        rules = [FakeRule("MERCHANT_NAME", "EQUALS", "dunkin")]
        assert find_best_rule(rules, coffee_context) is None

    def test_empty_rule_set(self, coffee_context):
        assert find_best_rule([], coffee_context) is None

    def test_lower_priority_wins_over_specificity(self, coffee_context):
        broad = FakeRule("ORIGINAL_DESCRIPTION", "CONTAINS", "star", priority=10)
        exact = FakeRule("MERCHANT_NAME", "EQUALS", "starbucks", priority=50)
        assert find_best_rule([exact, broad], coffee_context) is broad

    def test_specificity_breaks_priority_ties(self, coffee_context):
        contains = FakeRule("ORIGINAL_DESCRIPTION", "CONTAINS", "starbucks")
        equals = FakeRule("MERCHANT_NAME", "EQUALS", "starbucks")
        assert find_best_rule([contains, equals], coffee_context) is equals

    def test_longer_pattern_is_more_specific(self, coffee_context):
        short = FakeRule("ORIGINAL_DESCRIPTION", "CONTAINS", "star")
        long = FakeRule("ORIGINAL_DESCRIPTION", "CONTAINS", "starbucks store")
        assert find_best_rule([short, long], coffee_context) is long

    def test_earlier_creation_breaks_specificity_ties(self, coffee_context):
        older = FakeRule("MERCHANT_NAME", "EQUALS", "starbucks", created_at=BASE_TIME)
        newer = FakeRule(
            "MERCHANT_NAME", "EQUALS", "starbucks", created_at=BASE_TIME + timedelta(days=1)
        )
        assert find_best_rule([newer, older], coffee_context) is older

    def test_naive_and_aware_creation_times_compare(self, coffee_context):
        aware = FakeRule(
            "MERCHANT_NAME", "EQUALS", "starbucks", created_at=BASE_TIME + timedelta(hours=1)
        )
        naive = FakeRule("MERCHANT_NAME", "EQUALS", "starbucks", created_at=datetime(2026, 1, 1))
        assert find_best_rule([aware, naive], coffee_context) is naive

    def test_lowest_id_breaks_full_ties(self, coffee_context):
        low = FakeRule(
            "MERCHANT_NAME", "EQUALS", "starbucks",
            id=UUID("00000000-0000-0000-0000-000000000001"),
        )
        high = FakeRule(
            "MERCHANT_NAME", "EQUALS", "starbucks",
            id=UUID("ffffffff-0000-0000-0000-000000000000"),
        )
        assert find_best_rule([high, low], coffee_context) is low

    def test_result_is_independent_of_input_order(self, coffee_context):
        rules = [
            FakeRule("MERCHANT_NAME", "EQUALS", "starbucks", priority=20),
            FakeRule("ORIGINAL_DESCRIPTION", "CONTAINS", "starbucks", priority=20),
            FakeRule("ORIGINAL_DESCRIPTION", "REGEX", "star.*", priority=20),
            FakeRule("MCC", "EQUALS", "5814", priority=30),
            FakeRule("MERCHANT_NAME", "EQUALS", "starbucks", priority=20,
                     created_at=BASE_TIME + timedelta(seconds=1)),
        ]
        expected = find_best_rule(rules, coffee_context)
        rng = random.Random(1234)
        for _ in range(25):
            shuffled = rules[:]
            rng.shuffle(shuffled)
            assert find_best_rule(shuffled, coffee_context) is expected


class TestScores:
    """Specificity and informational confidence."""

    def test_specificity_orders_operators(self):
        pattern = "abc"
        scores = [
            specificity_score(FakeRule("MERCHANT_NAME", op, pattern))
            for op in ("EQUALS", "STARTS_WITH", "CONTAINS", "REGEX")
        ]
        assert scores == sorted(scores, reverse=True)
        assert specificity_score(FakeRule("MERCHANT_NAME", "EQUALS", pattern)) == 403

    def test_confidence_for_high_priority_equals(self):
        assert confidence_for_rule(FakeRule("MERCHANT_NAME", "EQUALS", "x", priority=10)) == 0.94

    def test_confidence_penalizes_priority(self):
        rule = FakeRule("MERCHANT_NAME", "CONTAINS", "x", priority=60)
        assert confidence_for_rule(rule) == pytest.approx(0.70)

    def test_confidence_is_clamped(self):
        rule = FakeRule("MERCHANT_NAME", "REGEX", "x", priority=10_000)
        assert confidence_for_rule(rule) == 0.56
        assert confidence_for_rule(FakeRule("MERCHANT_NAME", "FUZZY", "x")) == 0.55

    def test_confidence_within_bounds(self):
        for op in ("EQUALS", "STARTS_WITH", "ENDS_WITH", "CONTAINS", "REGEX"):
            for priority in (0, 10, 100, 1000):
                value = confidence_for_rule(FakeRule("MERCHANT_NAME", op, "x", priority=priority))
                assert 0.55 <= value <= 0.99
