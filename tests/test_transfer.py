"""Tests for copying rows and balance between budgets."""

from __future__ import annotations

import sqlite3

import pytest

from household_budget import db, transfer
from household_budget.exceptions import AuthorizationError, TransferError
from household_budget.models import Entry, EntryType
from household_budget.patterns import expand
from household_budget.transfer import (
    compute_balance_to_transfer,
    entry_type_filter,
    transfer_rows_from_budget,
)

USER = "alice"


@pytest.fixture
def budgets(budget_db):
    """A 2024 source budget with 2 income and 3 expense entries and an empty 2025 target."""
    source = db.create_budget(USER, 2024, starting_balance=5000)
    target = db.create_budget(USER, 2025)
    work = db.create_category(USER, "Work")
    home = db.create_category(USER, "Home")
    db.create_entry(USER, source, work, "Salary", "income", [20000] * 12)
    db.create_entry(USER, source, work, "Bonus", "income", expand("yearly", 10000))
    db.create_entry(USER, source, home, "Rent", "expense", [8000] * 12)
    db.create_entry(USER, source, home, "Insurance", "expense", expand("quarterly", 1500))
    db.create_entry(USER, source, home, "Repairs", "expense", expand("half-yearly", 2000))
    return source, target


def test_entry_type_filter() -> None:
    assert entry_type_filter(True, False) is EntryType.INCOME
    assert entry_type_filter(False, True) is EntryType.EXPENSE
    assert entry_type_filter(True, True) is None
    assert entry_type_filter(False, False) is None


def test_compute_balance_to_transfer() -> None:
    entries = [
        Entry.from_amounts("Salary", 1, "income", [1000] * 12),
        Entry.from_amounts("Rent", 2, "expense", [400] * 12),
    ]
    assert compute_balance_to_transfer(entries) == 7200
    assert compute_balance_to_transfer([]) == 0


def test_copy_income_rows_only(budgets) -> None:
    source, target = budgets

    result = transfer_rows_from_budget(USER, target, source, False, True, False)

    copied = db.fetch_entries(USER, target)
    assert result.copied_entry_count == 2
    assert result.balance_to_transfer is None
    assert len(copied) == 2
    assert all(e.entry_type is EntryType.INCOME for e in copied)
    assert [e.amounts for e in copied] == [[20000] * 12, expand("yearly", 10000)]


def test_copy_all_rows_keeps_source(budgets) -> None:
    source, target = budgets

    result = transfer_rows_from_budget(USER, target, source, False, True, True)

    assert result.copied_entry_count == 5
    assert len(db.fetch_entries(USER, target)) == 5
    assert len(db.fetch_entries(USER, source)) == 5
    assert {e.id for e in db.fetch_entries(USER, target)}.isdisjoint(
        {e.id for e in db.fetch_entries(USER, source)}
    )


def test_balance_only_is_computed_from_all_entries(budgets) -> None:
    source, target = budgets

    result = transfer_rows_from_budget(USER, target, source, True, False, False)

    # 240000 + 10000 - 96000 - 6000 - 4000; the source starting balance is not carried
    assert result.balance_to_transfer == 144000
    assert result.copied_entry_count == 0
    assert db.fetch_entries(USER, target) == []
    assert db.fetch_budget(USER, target).starting_balance == 0


def test_balance_ignores_row_flags(budgets) -> None:
    source, target = budgets

    result = transfer_rows_from_budget(USER, target, source, True, False, True)

    assert result.copied_entry_count == 3
    assert result.balance_to_transfer == 144000


def test_nothing_requested(budgets) -> None:
    source, target = budgets

    result = transfer_rows_from_budget(USER, target, source, False, False, False)

    assert result.copied_entry_count == 0
    assert result.balance_to_transfer is None


def test_same_budget_is_rejected(budgets) -> None:
    source, _ = budgets
    with pytest.raises(ValueError):
        transfer_rows_from_budget(USER, source, source, True, True, True)


def test_foreign_source_is_rejected_before_writing(budgets) -> None:
    _, target = budgets
    foreign = db.create_budget("mallory", 2024)
    db.create_entry("mallory", foreign, None, "Secret", "income", [1] * 12)

    with pytest.raises(AuthorizationError):
        transfer_rows_from_budget(USER, target, foreign, True, True, True)
    assert db.fetch_entries(USER, target) == []


def test_failure_keeps_rows_copied_before_it(budgets, monkeypatch: pytest.MonkeyPatch) -> None:
    source, target = budgets
    real_create_entry = db.create_entry
    calls = []

    def flaky_create_entry(*args, **kwargs):
        calls.append(args)
        if len(calls) == 3:
            raise sqlite3.OperationalError("disk I/O error")
        return real_create_entry(*args, **kwargs)

    monkeypatch.setattr(transfer.db, "create_entry", flaky_create_entry)

    with pytest.raises(TransferError, match="Failed to transfer rows"):
        transfer_rows_from_budget(USER, target, source, True, True, True)
    assert [e.description for e in db.fetch_entries(USER, target)] == ["Salary", "Bonus"]


def test_committing_transferred_balance(budgets) -> None:
    source, target = budgets
    result = transfer_rows_from_budget(USER, target, source, True, False, False)

    db.update_starting_balance(USER, target, result.balance_to_transfer)

    assert db.fetch_budget(USER, target).starting_balance == 144000
