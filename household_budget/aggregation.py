"""Monthly budget aggregation.

Turns a budget's entries into the numbers shown on the budget page:
monthly income, expense and net arrays, the running balance seeded
from the budget's starting balance, yearly totals and a category
rollup.  Everything here is a pure function of its inputs so it is
safe to recompute on every edit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

import pandas as pd

from .formatting import month_labels
from .models import MONTHS, Entry, EntryType

UNKNOWN_CATEGORY = 'Unknown'


@dataclass
class BudgetSummary:
    monthly_income: List[float]
    monthly_expense: List[float]
    monthly_net: List[float]
    running_balance: List[float]
    total_income: float
    total_expense: float
    grand_total: float
    category_totals: Dict[object, float] = field(default_factory=dict)

    @property
    def end_balance(self) -> float:
        """Balance after December."""
        return self.running_balance[-1]


@dataclass
class MonthSnapshot:
    month: int
    starting_balance: float
    income_entries: List[Entry]
    expense_entries: List[Entry]
    total_income: float
    total_expense: float

    @property
    def end_balance(self) -> float:
        return self.starting_balance + self.total_income - self.total_expense


def _zeros() -> List[float]:
    return [0.0] * len(MONTHS)


def running_balance(monthly_net: Sequence[float], starting_balance: float = 0.0) -> List[float]:
    """Fold ``monthly_net`` left from ``starting_balance``."""
    balances: List[float] = []
    current = float(starting_balance)
    for net in monthly_net:
        current += net
        balances.append(current)
    return balances


def category_totals(
    entries: Sequence[Entry],
    category_names: Optional[Mapping[int, str]] = None,
) -> Dict[object, float]:
    """Sum each entry's signed row total into its category bucket.

    With ``category_names`` the buckets are labelled by name and ids
    missing from the mapping land in ``'Unknown'``; without it the
    buckets are keyed by category id.
    """
    totals: Dict[object, float] = {}
    for entry in entries:
        if category_names is None:
            key: object = entry.category_id
        else:
            key = category_names.get(entry.category_id, UNKNOWN_CATEGORY)
        totals[key] = totals.get(key, 0.0) + entry.row_total
    return totals


def aggregate(
    entries: Sequence[Entry],
    starting_balance: float = 0.0,
    category_names: Optional[Mapping[int, str]] = None,
) -> BudgetSummary:
    """Compute monthly totals, running balance and category rollup.

    Example:
        >>> salary = Entry.from_amounts('Salary', 1, 'income', [5000] * 12)
        >>> rent = Entry.from_amounts('Rent', 2, 'expense', [2000] * 12)
        >>> summary = aggregate([salary, rent], 1000)
        >>> summary.monthly_net[0], summary.running_balance[-1]
        (3000.0, 37000.0)
    """
    monthly_income = _zeros()
    monthly_expense = _zeros()
    monthly_net = _zeros()

    for entry in entries:
        if entry.entry_type is EntryType.INCOME:
            for ea in entry.entry_amounts:
                monthly_income[ea.month - 1] += ea.amount
                monthly_net[ea.month - 1] += ea.amount
        else:
            for ea in entry.entry_amounts:
                monthly_expense[ea.month - 1] += ea.amount
                monthly_net[ea.month - 1] -= ea.amount

    return BudgetSummary(
        monthly_income=monthly_income,
        monthly_expense=monthly_expense,
        monthly_net=monthly_net,
        running_balance=running_balance(monthly_net, starting_balance),
        total_income=sum(monthly_income),
        total_expense=sum(monthly_expense),
        grand_total=sum(monthly_net),
        category_totals=category_totals(entries, category_names),
    )


def net_balance(entries: Sequence[Entry]) -> float:
    """Income minus expense over the whole year, ignoring any starting balance."""
    return aggregate(entries).grand_total


def month_snapshot(entries: Sequence[Entry], starting_balance: float, month: int) -> MonthSnapshot:
    """Balance and entries for a single month of the budget.

    The snapshot's starting balance is the running balance at the end of
    the previous month (the budget's starting balance for January).
    Only entries with a non-zero amount in ``month`` are listed.
    """
    if month not in MONTHS:
        raise ValueError(f"Month must be between 1 and 12, got {month}")
    summary = aggregate(entries, starting_balance)
    opening = float(starting_balance) if month == 1 else summary.running_balance[month - 2]
    active = [entry for entry in entries if entry.amounts[month - 1] != 0]
    return MonthSnapshot(
        month=month,
        starting_balance=opening,
        income_entries=[e for e in active if e.entry_type is EntryType.INCOME],
        expense_entries=[e for e in active if e.entry_type is EntryType.EXPENSE],
        total_income=summary.monthly_income[month - 1],
        total_expense=summary.monthly_expense[month - 1],
    )


def summary_frame(summary: BudgetSummary, locale: Optional[str] = None) -> pd.DataFrame:
    """Create DataFrame with one row per month for charts.

    Returns:
        DataFrame with columns: Month, Income, Expense, Net, Balance
    """
    return pd.DataFrame({
        'Month': month_labels(locale),
        'Income': summary.monthly_income,
        'Expense': summary.monthly_expense,
        'Net': summary.monthly_net,
        'Balance': summary.running_balance,
    })


def entries_frame(
    entries: Sequence[Entry],
    category_names: Optional[Mapping[int, str]] = None,
    locale: Optional[str] = None,
) -> pd.DataFrame:
    """Create the budget table: one row per entry, income rows first.

    Expense amounts are shown negative so each row's Total column is its
    signed row total.

    Returns:
        DataFrame with columns: id, Description, Category, Type, the 12
        month labels, Total
    """
    labels = month_labels(locale)
    columns = ['id', 'Description', 'Category', 'Type', *labels, 'Total']
    names = category_names or {}
    rows = []
    ordered = sorted(entries, key=lambda e: e.entry_type is EntryType.EXPENSE)
    for entry in ordered:
        sign = entry.entry_type.sign
        row = {
            'id': entry.id,
            'Description': entry.description,
            'Category': names.get(entry.category_id, UNKNOWN_CATEGORY),
            'Type': entry.entry_type.value,
        }
        for label, amount in zip(labels, entry.amounts):
            row[label] = sign * amount
        row['Total'] = entry.row_total
        rows.append(row)
    return pd.DataFrame(rows, columns=columns)
