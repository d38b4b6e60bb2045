"""Repeating-amount patterns for the 12 monthly amounts of an entry.

A pattern describes how a single repeating amount is spread over the
year.  :func:`expand` turns a pattern and an amount into the 12-month
vector used when creating an entry, and :func:`detect` works the other
way round so the edit form can be pre-filled from stored amounts.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple

from .models import MONTHS, monthly_vector


class Pattern(str, Enum):
    CUSTOM = 'custom'
    MONTHLY = 'monthly'
    QUARTERLY = 'quarterly'
    HALF_YEARLY = 'half-yearly'
    YEARLY = 'yearly'


# Months that carry the repeating amount for each fixed pattern.
PATTERN_MONTHS: Dict[Pattern, FrozenSet[int]] = {
    Pattern.MONTHLY: frozenset(MONTHS),
    Pattern.QUARTERLY: frozenset({1, 4, 7, 10}),
    Pattern.HALF_YEARLY: frozenset({1, 7}),
    Pattern.YEARLY: frozenset({1}),
}


def expand(pattern: Pattern | str, amount: float) -> List[float]:
    """Spread ``amount`` over the months of ``pattern``; other months are 0.

    Example:
        >>> expand('half-yearly', 600)
        [600.0, 0.0, 0.0, 0.0, 0.0, 0.0, 600.0, 0.0, 0.0, 0.0, 0.0, 0.0]

    Raises:
        ValueError: For ``custom``, whose amounts are entered month by month.
    """
    pattern = Pattern(pattern)
    if pattern is Pattern.CUSTOM:
        raise ValueError("Custom amounts are entered per month and cannot be expanded")
    months = PATTERN_MONTHS[pattern]
    value = float(amount)
    return [value if month in months else 0.0 for month in MONTHS]


def _matches(months: FrozenSet[int]) -> Callable[[List[float]], bool]:
    def rule(amounts: List[float]) -> bool:
        value = amounts[min(months) - 1]
        if value == 0:
            return False
        return all(
            amounts[month - 1] == (value if month in months else 0)
            for month in MONTHS
        )
    return rule


# Evaluated in order, first match wins.  Yearly must stay after the
# broader shapes since it only looks at month 1.
DETECTION_RULES: Tuple[Tuple[Pattern, Callable[[List[float]], bool]], ...] = (
    (Pattern.MONTHLY, _matches(PATTERN_MONTHS[Pattern.MONTHLY])),
    (Pattern.QUARTERLY, _matches(PATTERN_MONTHS[Pattern.QUARTERLY])),
    (Pattern.HALF_YEARLY, _matches(PATTERN_MONTHS[Pattern.HALF_YEARLY])),
    (Pattern.YEARLY, _matches(PATTERN_MONTHS[Pattern.YEARLY])),
)


def detect(amounts: Sequence[float]) -> Pattern:
    """Infer the pattern that produced ``amounts`` (12 values, January first).

    Example:
        >>> detect([100, 0, 0, 100, 0, 0, 100, 0, 0, 100, 0, 0])
        <Pattern.QUARTERLY: 'quarterly'>
    """
    vector = monthly_vector(amounts)
    for pattern, rule in DETECTION_RULES:
        if rule(vector):
            return pattern
    return Pattern.CUSTOM


def repeating_amount(amounts: Sequence[float]) -> Optional[float]:
    """Return the repeating amount behind ``amounts``, or None for custom vectors."""
    vector = monthly_vector(amounts)
    if detect(vector) is Pattern.CUSTOM:
        return None
    return vector[0]
