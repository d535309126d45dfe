"""Unit tests for upstream category label normalization."""

from finsync.categorization.labels import plaid_category_label


def test_detailed_label_preferred() -> None:
    assert plaid_category_label("FOOD_AND_DRINK_COFFEE", "FOOD_AND_DRINK") == "Food And Drink Coffee"


def test_primary_used_when_detailed_missing() -> None:
    assert plaid_category_label(None, "TRANSPORTATION") == "Transportation"
    assert plaid_category_label("   ", "GENERAL_MERCHANDISE") == "General Merchandise"


def test_separators_and_whitespace_collapse() -> None:
    assert plaid_category_label("rent__and-utilities  gas") == "Rent And Utilities Gas"


def test_spellings_of_one_code_share_a_label() -> None:
    assert plaid_category_label("food_and_drink") == plaid_category_label("FOOD-AND-DRINK")


def test_empty_input_returns_none() -> None:
    assert plaid_category_label(None) is None
    assert plaid_category_label("", "") is None
    assert plaid_category_label("___") is None
