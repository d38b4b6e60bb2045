"""Carry rows and balance from one budget year into another."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Optional, Sequence

from . import db
from .aggregation import aggregate
from .exceptions import TransferError
from .models import Entry, EntryType

logger = logging.getLogger(__name__)


@dataclass
class TransferResult:
    copied_entry_count: int = 0
    balance_to_transfer: Optional[float] = None


def entry_type_filter(include_income: bool, include_expense: bool) -> Optional[EntryType]:
    """Type to filter source entries by, or None to copy every type.

    Only asking for exactly one of income/expense narrows the fetch;
    both or neither mean no filter.
    """
    if include_income and not include_expense:
        return EntryType.INCOME
    if include_expense and not include_income:
        return EntryType.EXPENSE
    return None


def compute_balance_to_transfer(source_entries: Sequence[Entry]) -> float:
    """Income minus expense of the source budget, ignoring its starting balance."""
    return aggregate(source_entries, 0.0).grand_total


def _copy_rows(
    acting_user: str,
    target_budget_id: int,
    source_budget_id: int,
    include_income: bool,
    include_expense: bool,
) -> int:
    entry_type = entry_type_filter(include_income, include_expense)
    copied = 0
    try:
        source_entries = db.fetch_entries(acting_user, source_budget_id, entry_type=entry_type)
        for entry in source_entries:
            db.create_entry(
                acting_user,
                target_budget_id,
                entry.category_id,
                entry.description,
                entry.entry_type,
                entry.amounts,
                allow_empty=True,
            )
            copied += 1
    except (sqlite3.Error, ValueError) as e:
        logger.exception(
            "Failed to transfer rows from budget %s to %s after %d entries",
            source_budget_id, target_budget_id, copied,
        )
        raise TransferError("Failed to transfer rows") from e
    return copied


def transfer_rows_from_budget(
    acting_user: str,
    target_budget_id: int,
    source_budget_id: int,
    include_balance: bool,
    include_income: bool,
    include_expense: bool,
) -> TransferResult:
    """Copy entries and/or compute the balance to carry forward.

    The row phase runs when income or expense rows are requested and
    duplicates each selected source entry, with its 12 amounts, into the
    target budget.  Each copied entry is written atomically, but entries
    copied before a failure are kept.

    The balance phase runs when ``include_balance`` is set.  It totals
    all source entries (independent of the income/expense flags) and
    returns the result as ``balance_to_transfer``; committing it as the
    target's starting balance is left to the caller.

    Raises:
        AuthorizationError: If either budget is not the user's.
        ValueError: If source and target are the same budget.
        TransferError: If copying rows or computing the balance fails.
    """
    if target_budget_id == source_budget_id:
        raise ValueError("Source and target budget must differ")
    db.fetch_budget(acting_user, target_budget_id)
    db.fetch_budget(acting_user, source_budget_id)

    result = TransferResult()
    if include_income or include_expense:
        result.copied_entry_count = _copy_rows(
            acting_user, target_budget_id, source_budget_id, include_income, include_expense
        )

    if include_balance:
        try:
            source_entries = db.fetch_entries(acting_user, source_budget_id)
        except (sqlite3.Error, ValueError) as e:
            logger.exception("Failed to transfer balance from budget %s", source_budget_id)
            raise TransferError("Failed to transfer balance") from e
        result.balance_to_transfer = compute_balance_to_transfer(source_entries)

    logger.info(
        "Transferred %d entries from budget %s to %s (balance: %s)",
        result.copied_entry_count, source_budget_id, target_budget_id, result.balance_to_transfer,
    )
    return result
