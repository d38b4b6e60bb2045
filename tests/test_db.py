"""Tests for the SQLite storage layer."""

from __future__ import annotations

import sqlite3

import pytest

from household_budget import db
from household_budget.exceptions import AuthorizationError
from household_budget.models import EntryType

USER = "alice"


def _count(table: str) -> int:
    with db.connect() as conn:
        return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


def test_init_db_is_idempotent(budget_db) -> None:
    db.init_db()
    assert budget_db.exists()


def test_budget_defaults_and_ordering(budget_db) -> None:
    older = db.create_budget(USER, 2024)
    newer = db.create_budget(USER, 2025, "Family", starting_balance=1500)

    budgets = db.fetch_budgets(USER)

    assert [b.id for b in budgets] == [newer, older]
    assert budgets[1].name == "Budget 2024"
    assert budgets[0].starting_balance == 1500
    assert db.fetch_budgets("bob") == []


def test_create_entry_writes_twelve_amounts(budget_db) -> None:
    budget_id = db.create_budget(USER, 2025)
    category_id = db.create_category(USER, "Housing")

    entry_id = db.create_entry(USER, budget_id, category_id, "  Rent ", EntryType.EXPENSE, [2000] * 12)

    entry = db.fetch_entry(USER, entry_id)
    assert entry.description == "Rent"
    assert entry.entry_type is EntryType.EXPENSE
    assert [ea.month for ea in entry.entry_amounts] == list(range(1, 13))
    assert _count("entry_amounts") == 12


@pytest.mark.parametrize(
    "description, amounts",
    [
        ("", [1] * 12),
        ("Rent", [0] * 12),
        ("Rent", [1] * 11),
        ("Rent", [1] * 11 + [-1]),
        ("Rent", [1] * 11 + [float("inf")]),
    ],
)
def test_create_entry_rejects_bad_input(budget_db, description, amounts) -> None:
    budget_id = db.create_budget(USER, 2025)

    with pytest.raises(ValueError):
        db.create_entry(USER, budget_id, None, description, "expense", amounts)
    assert _count("entries") == 0


def test_create_entry_allow_empty(budget_db) -> None:
    budget_id = db.create_budget(USER, 2025)

    entry_id = db.create_entry(USER, budget_id, None, "Placeholder", "income", [0] * 12, allow_empty=True)

    assert db.fetch_entry(USER, entry_id).total == 0


def test_failed_amount_insert_rolls_back_entry(budget_db) -> None:
    budget_id = db.create_budget(USER, 2025)
    with db.connect() as conn:
        conn.execute(
            "CREATE TRIGGER fail_amounts BEFORE INSERT ON entry_amounts "
            "WHEN NEW.month = 7 BEGIN SELECT RAISE(ABORT, 'boom'); END"
        )
        conn.commit()

    with pytest.raises(sqlite3.DatabaseError):
        db.create_entry(USER, budget_id, None, "Rent", "expense", [100] * 12)
    assert _count("entries") == 0
    assert _count("entry_amounts") == 0


def test_other_users_cannot_touch_records(budget_db) -> None:
    budget_id = db.create_budget(USER, 2025)
    category_id = db.create_category(USER, "Housing")
    entry_id = db.create_entry(USER, budget_id, category_id, "Rent", "expense", [1] * 12)

    with pytest.raises(AuthorizationError):
        db.fetch_entries("bob", budget_id)
    with pytest.raises(AuthorizationError):
        db.create_entry("bob", budget_id, None, "Sneaky", "income", [1] * 12)
    with pytest.raises(AuthorizationError):
        db.update_entry_amount("bob", entry_id, 1, 5)
    with pytest.raises(AuthorizationError):
        db.delete_entry("bob", entry_id)
    with pytest.raises(AuthorizationError):
        db.update_starting_balance("bob", budget_id, 10)
    with pytest.raises(AuthorizationError):
        db.delete_category("bob", category_id)
    bob_budget = db.create_budget("bob", 2025)
    with pytest.raises(AuthorizationError):
        db.create_entry("bob", bob_budget, category_id, "Sneaky", "income", [1] * 12)


def test_update_entry_fields(budget_db) -> None:
    budget_id = db.create_budget(USER, 2025)
    housing = db.create_category(USER, "Housing")
    other = db.create_category(USER, "Other")
    entry_id = db.create_entry(USER, budget_id, housing, "Rent", "expense", [1000] * 12)

    db.update_entry_description(USER, entry_id, "Flat rent")
    db.update_entry_type(USER, entry_id, "income")
    db.update_entry_category(USER, entry_id, other)
    db.update_entry_amount(USER, entry_id, 12, 1500)

    entry = db.fetch_entry(USER, entry_id)
    assert entry.description == "Flat rent"
    assert entry.entry_type is EntryType.INCOME
    assert entry.category_id == other
    assert entry.amounts[-1] == 1500
    with pytest.raises(ValueError):
        db.update_entry_amount(USER, entry_id, 13, 1)
    with pytest.raises(ValueError):
        db.update_entry_description(USER, entry_id, "   ")


def test_update_entry_amounts_writes_changed_months(budget_db) -> None:
    budget_id = db.create_budget(USER, 2025)
    entry_id = db.create_entry(USER, budget_id, None, "Gym", "expense", [300] * 12)

    changed = db.update_entry_amounts(USER, entry_id, [300] * 6 + [0] * 6)

    assert changed == 6
    assert db.fetch_entry(USER, entry_id).amounts == [300] * 6 + [0] * 6
    assert db.update_entry_amounts(USER, entry_id, [300] * 6 + [0] * 6) == 0


def test_delete_budget_cascades(budget_db) -> None:
    keep = db.create_budget(USER, 2024)
    drop = db.create_budget(USER, 2025)
    db.create_entry(USER, keep, None, "Salary", "income", [1] * 12)
    db.create_entry(USER, drop, None, "Salary", "income", [1] * 12)

    db.delete_budget(USER, drop)

    assert _count("entries") == 1
    assert _count("entry_amounts") == 12
    with pytest.raises(AuthorizationError):
        db.fetch_budget(USER, drop)


def test_deleted_category_leaves_entries_uncategorised(budget_db) -> None:
    budget_id = db.create_budget(USER, 2025)
    category_id = db.create_category(USER, "Temporary")
    entry_id = db.create_entry(USER, budget_id, category_id, "Thing", "expense", [1] * 12)

    db.delete_category(USER, category_id)

    assert db.fetch_entry(USER, entry_id).category_id is None


def test_categories(budget_db) -> None:
    db.create_category(USER, "Housing")
    db.create_category(USER, "Food")

    assert db.fetch_category_names(USER) == ["Housing", "Food"]
    assert [c.sort_order for c in db.fetch_categories(USER)] == [0, 1]
    assert sorted(db.fetch_category_map(USER).values()) == ["Food", "Housing"]
    with pytest.raises(ValueError):
        db.create_category(USER, "Food")
    with pytest.raises(ValueError):
        db.create_category(USER, " ")
    db.create_category("bob", "Food")


def test_fetch_entries_by_type(budget_db) -> None:
    budget_id = db.create_budget(USER, 2025)
    db.create_entry(USER, budget_id, None, "Salary", "income", [1] * 12)
    db.create_entry(USER, budget_id, None, "Rent", "expense", [1] * 12)

    assert [e.description for e in db.fetch_entries(USER, budget_id, "expense")] == ["Rent"]
    assert [e.description for e in db.fetch_entries(USER, budget_id, EntryType.INCOME)] == ["Salary"]


def test_fetch_budget_balance(budget_db) -> None:
    budget_id = db.create_budget(USER, 2025, starting_balance=250)
    db.create_entry(USER, budget_id, None, "Salary", "income", [100] * 12)
    db.create_entry(USER, budget_id, None, "Rent", "expense", [40] * 12)

    assert db.fetch_budget_balance(USER, budget_id) == {"balance": 720, "starting_balance": 250}


def test_settings_defaults_and_update(budget_db) -> None:
    settings = db.get_settings(USER)
    assert (settings.currency, settings.locale) == ("DKK", "da-DK")

    updated = db.update_settings(USER, currency="eur")

    assert updated.currency == "EUR"
    assert updated.locale == "da-DK"
    assert db.get_settings(USER) == updated


def test_update_entry_amounts_rejects_all_zero(budget_db) -> None:
    budget_id = db.create_budget(USER, 2025)
    entry_id = db.create_entry(USER, budget_id, None, "Gym", "expense", [300] * 12)

    with pytest.raises(ValueError, match="At least one month"):
        db.update_entry_amounts(USER, entry_id, [0] * 12)

    assert db.fetch_entry(USER, entry_id).amounts == [300] * 12
    assert db.update_entry_amounts(USER, entry_id, [0] * 12, allow_empty=True) == 12


def test_update_entry_saves_all_fields(budget_db) -> None:
    budget_id = db.create_budget(USER, 2025)
    housing = db.create_category(USER, "Housing")
    other = db.create_category(USER, "Other")
    entry_id = db.create_entry(USER, budget_id, housing, "Rent", "expense", [1000] * 12)

    db.update_entry(USER, entry_id, " Bonus ", "income", other, [500] + [0] * 11)

    entry = db.fetch_entry(USER, entry_id)
    assert entry.description == "Bonus"
    assert entry.entry_type is EntryType.INCOME
    assert entry.category_id == other
    assert entry.amounts == [500] + [0] * 11


@pytest.mark.parametrize(
    "description, category, amounts",
    [
        ("Flat rent", None, [0] * 12),
        ("", None, [1200] * 12),
        ("Flat rent", "foreign", [1200] * 12),
    ],
)
def test_update_entry_leaves_entry_untouched_on_error(budget_db, description, category, amounts) -> None:
    budget_id = db.create_budget(USER, 2025)
    housing = db.create_category(USER, "Housing")
    entry_id = db.create_entry(USER, budget_id, housing, "Rent", "expense", [1000] * 12)
    category_id = db.create_category("bob", "Bob's") if category == "foreign" else housing

    with pytest.raises((ValueError, AuthorizationError)):
        db.update_entry(USER, entry_id, description, "income", category_id, amounts)

    entry = db.fetch_entry(USER, entry_id)
    assert (entry.description, entry.entry_type, entry.category_id) == ("Rent", EntryType.EXPENSE, housing)
    assert entry.amounts == [1000] * 12


def test_update_entry_rolls_back_when_amounts_fail(budget_db) -> None:
    budget_id = db.create_budget(USER, 2025)
    entry_id = db.create_entry(USER, budget_id, None, "Rent", "expense", [1000] * 12)
    with db.connect() as conn:
        conn.execute(
            "CREATE TRIGGER fail_amount_update BEFORE UPDATE ON entry_amounts "
            "WHEN NEW.month = 12 BEGIN SELECT RAISE(ABORT, 'boom'); END"
        )
        conn.commit()

    with pytest.raises(sqlite3.DatabaseError):
        db.update_entry(USER, entry_id, "Flat rent", "expense", None, [1200] * 12)

    entry = db.fetch_entry(USER, entry_id)
    assert entry.description == "Rent"
    assert entry.amounts == [1000] * 12
