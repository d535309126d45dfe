"""Upstream category label normalization.

The aggregator reports taxonomy codes such as ``FOOD_AND_DRINK_COFFEE``. Local
system categories use a human-readable form of the same code, so two spellings
of one code always land in the same category row.
"""

from __future__ import annotations

import re
from typing import NewType

CategoryLabel = NewType("CategoryLabel", str)

_SEPARATORS = re.compile(r"[_-]+")
_WHITESPACE = re.compile(r"\s+")
_WORD_START = re.compile(r"\b\w")


def plaid_category_label(
    detailed: str | None, primary: str | None = None
) -> CategoryLabel | None:
    """Build a display label from the detailed category, falling back to primary.

    >>> plaid_category_label("FOOD_AND_DRINK_COFFEE", "FOOD_AND_DRINK")
    'Food And Drink Coffee'
    """
    raw = (detailed or "").strip() or (primary or "").strip()
    if not raw:
        return None
    text = _SEPARATORS.sub(" ", raw.lower())
    text = _WHITESPACE.sub(" ", text).strip()
    if not text:
        return None
    return CategoryLabel(_WORD_START.sub(lambda m: m.group(0).upper(), text))
