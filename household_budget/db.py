from __future__ import annotations

import logging
import math
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

from .aggregation import net_balance
from .config import DB_PATH, DEFAULT_CURRENCY, DEFAULT_LOCALE, MAX_CATEGORY_LENGTH, ensure_data_directories
from .exceptions import AuthorizationError
from .models import MONTHS, Budget, Category, Entry, EntryType, Settings, monthly_vector

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS budgets (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    year INTEGER NOT NULL,
    starting_balance REAL NOT NULL DEFAULT 0,
    created_at TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    sort_order INTEGER NOT NULL DEFAULT 0,
    created_at TEXT,
    updated_at TEXT,
    UNIQUE (user_id, name)
);

CREATE TABLE IF NOT EXISTS entries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    budget_id INTEGER NOT NULL REFERENCES budgets (id) ON DELETE CASCADE,
    category_id INTEGER REFERENCES categories (id) ON DELETE SET NULL,
    description TEXT NOT NULL,
    entry_type TEXT NOT NULL CHECK (entry_type IN ('income', 'expense')),
    created_at TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS entry_amounts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    entry_id INTEGER NOT NULL REFERENCES entries (id) ON DELETE CASCADE,
    month INTEGER NOT NULL CHECK (month BETWEEN 1 AND 12),
    amount REAL NOT NULL DEFAULT 0 CHECK (amount >= 0),
    UNIQUE (entry_id, month)
);

CREATE TABLE IF NOT EXISTS settings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL UNIQUE,
    currency TEXT NOT NULL,
    locale TEXT NOT NULL,
    created_at TEXT,
    updated_at TEXT
);

CREATE INDEX IF NOT EXISTS ix_budgets_user ON budgets (user_id, year);
CREATE INDEX IF NOT EXISTS ix_entries_budget ON entries (budget_id, entry_type);
CREATE INDEX IF NOT EXISTS ix_amounts_entry ON entry_amounts (entry_id);
"""


def _ensure_dirs() -> None:
    ensure_data_directories()
    Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@contextmanager
def connect() -> Iterator[sqlite3.Connection]:
    _ensure_dirs()
    conn = sqlite3.connect(str(DB_PATH))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
    finally:
        conn.close()


def init_db() -> None:
    with connect() as conn:
        conn.executescript(SCHEMA_SQL)
        conn.commit()


# ---------------------------------------------------------------------------
# Ownership checks
# ---------------------------------------------------------------------------

def _require_budget(conn: sqlite3.Connection, acting_user: str, budget_id: int) -> sqlite3.Row:
    row = conn.execute(
        "SELECT id, name, year, starting_balance FROM budgets WHERE id = ? AND user_id = ?",
        (budget_id, acting_user),
    ).fetchone()
    if row is None:
        raise AuthorizationError(f"Budget {budget_id} is not accessible to user '{acting_user}'")
    return row


def _require_entry(conn: sqlite3.Connection, acting_user: str, entry_id: int) -> sqlite3.Row:
    row = conn.execute(
        "SELECT id, budget_id, entry_type FROM entries WHERE id = ? AND user_id = ?",
        (entry_id, acting_user),
    ).fetchone()
    if row is None:
        raise AuthorizationError(f"Entry {entry_id} is not accessible to user '{acting_user}'")
    return row


def _require_category(conn: sqlite3.Connection, acting_user: str, category_id: int) -> sqlite3.Row:
    row = conn.execute(
        "SELECT id, name FROM categories WHERE id = ? AND user_id = ?",
        (category_id, acting_user),
    ).fetchone()
    if row is None:
        raise AuthorizationError(f"Category {category_id} is not accessible to user '{acting_user}'")
    return row


def _check_amount(amount: float) -> float:
    value = float(amount)
    if not math.isfinite(value):
        raise ValueError(f"Amount must be a finite number, got {amount!r}")
    if value < 0:
        raise ValueError("Monthly amounts cannot be negative")
    return value


def _check_month(month: int) -> int:
    if month not in MONTHS:
        raise ValueError(f"Month must be between 1 and 12, got {month}")
    return month


# ---------------------------------------------------------------------------
# Budgets
# ---------------------------------------------------------------------------

def create_budget(
    acting_user: str,
    year: int,
    name: Optional[str] = None,
    starting_balance: float = 0.0,
) -> int:
    """Create a budget for ``year`` and return its id."""
    label = (name or '').strip() or f"Budget {year}"
    now = _now()
    with connect() as conn:
        with conn:
            cur = conn.execute(
                "INSERT INTO budgets (user_id, name, year, starting_balance, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (acting_user, label, int(year), float(starting_balance), now, now),
            )
        budget_id = cur.lastrowid
    logger.info("Created budget %s (%s) for %s", budget_id, label, acting_user)
    return budget_id


def fetch_budgets(acting_user: str) -> List[Budget]:
    """Return the user's budgets, newest year first."""
    with connect() as conn:
        rows = conn.execute(
            "SELECT id, name, year, starting_balance FROM budgets WHERE user_id = ? "
            "ORDER BY year DESC, id DESC",
            (acting_user,),
        ).fetchall()
    return [Budget(id=r['id'], year=r['year'], name=r['name'], starting_balance=r['starting_balance']) for r in rows]


def fetch_budget(acting_user: str, budget_id: int) -> Budget:
    with connect() as conn:
        row = _require_budget(conn, acting_user, budget_id)
    return Budget(id=row['id'], year=row['year'], name=row['name'], starting_balance=row['starting_balance'])


def delete_budget(acting_user: str, budget_id: int) -> None:
    """Delete a budget together with its entries and their amounts."""
    with connect() as conn:
        _require_budget(conn, acting_user, budget_id)
        with conn:
            conn.execute("DELETE FROM budgets WHERE id = ? AND user_id = ?", (budget_id, acting_user))
    logger.info("Deleted budget %s for %s", budget_id, acting_user)


def update_starting_balance(acting_user: str, budget_id: int, starting_balance: float) -> None:
    """Commit a new starting balance for the budget."""
    value = float(starting_balance)
    if not math.isfinite(value):
        raise ValueError(f"Starting balance must be a finite number, got {starting_balance!r}")
    with connect() as conn:
        _require_budget(conn, acting_user, budget_id)
        with conn:
            conn.execute(
                "UPDATE budgets SET starting_balance = ?, updated_at = ? WHERE id = ? AND user_id = ?",
                (value, _now(), budget_id, acting_user),
            )


def fetch_budget_balance(acting_user: str, budget_id: int) -> Dict[str, float]:
    """Net of the budget's entries alongside its stored starting balance."""
    budget = fetch_budget(acting_user, budget_id)
    entries = fetch_entries(acting_user, budget_id)
    return {
        'balance': net_balance(entries),
        'starting_balance': budget.starting_balance or 0.0,
    }


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

def create_category(acting_user: str, name: str, sort_order: Optional[int] = None) -> int:
    """Create a category and return its id.

    Raises:
        ValueError: If the name is empty, too long or already used by the user.
    """
    label = (name or '').strip()
    if not label:
        raise ValueError("Category name cannot be empty")
    if len(label) > MAX_CATEGORY_LENGTH:
        raise ValueError(f"Category name too long (max {MAX_CATEGORY_LENGTH} characters)")
    now = _now()
    with connect() as conn:
        if sort_order is None:
            current = conn.execute(
                "SELECT MAX(sort_order) FROM categories WHERE user_id = ?", (acting_user,)
            ).fetchone()[0]
            sort_order = 0 if current is None else current + 1
        try:
            with conn:
                cur = conn.execute(
                    "INSERT INTO categories (user_id, name, sort_order, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (acting_user, label, int(sort_order), now, now),
                )
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Category '{label}' already exists") from e
    return cur.lastrowid


def fetch_categories(acting_user: str) -> List[Category]:
    with connect() as conn:
        rows = conn.execute(
            "SELECT id, name, sort_order FROM categories WHERE user_id = ? ORDER BY sort_order, name",
            (acting_user,),
        ).fetchall()
    return [Category(id=r['id'], name=r['name'], sort_order=r['sort_order']) for r in rows]


def fetch_category_names(acting_user: str) -> List[str]:
    return [c.name for c in fetch_categories(acting_user)]


def fetch_category_map(acting_user: str) -> Dict[int, str]:
    """Category id to name, for labelling aggregation output."""
    return {c.id: c.name for c in fetch_categories(acting_user)}


def delete_category(acting_user: str, category_id: int) -> None:
    """Delete a category; entries that used it keep their rows with no category."""
    with connect() as conn:
        _require_category(conn, acting_user, category_id)
        with conn:
            conn.execute("DELETE FROM categories WHERE id = ? AND user_id = ?", (category_id, acting_user))


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------

def create_entry(
    acting_user: str,
    budget_id: int,
    category_id: Optional[int],
    description: str,
    entry_type: EntryType | str,
    amounts: Sequence[float],
    *,
    allow_empty: bool = False,
) -> int:
    """Create an entry and its 12 monthly amounts in one transaction.

    Args:
        amounts: 12 non-negative amounts, January first.
        allow_empty: Accept a vector of zeros (used when copying stored rows).

    Returns:
        The new entry id.

    Raises:
        AuthorizationError: If the budget or category belongs to another user.
        ValueError: For a blank description, bad amounts, or all-zero amounts.
    """
    vector = [_check_amount(a) for a in monthly_vector(amounts)]
    kind = EntryType(entry_type)
    text = (description or '').strip()
    if not text:
        raise ValueError("Description is required")
    if not allow_empty and not any(a > 0 for a in vector):
        raise ValueError("At least one month must have an amount > 0")

    now = _now()
    with connect() as conn:
        _require_budget(conn, acting_user, budget_id)
        if category_id is not None:
            _require_category(conn, acting_user, category_id)
        with conn:
            cur = conn.execute(
                "INSERT INTO entries (user_id, budget_id, category_id, description, entry_type, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (acting_user, budget_id, category_id, text, kind.value, now, now),
            )
            entry_id = cur.lastrowid
            conn.executemany(
                "INSERT INTO entry_amounts (entry_id, month, amount) VALUES (?, ?, ?)",
                [(entry_id, month, amount) for month, amount in zip(MONTHS, vector)],
            )
    logger.debug("Created %s entry %s in budget %s", kind.value, entry_id, budget_id)
    return entry_id


def fetch_entries(
    acting_user: str,
    budget_id: int,
    entry_type: Optional[EntryType | str] = None,
) -> List[Entry]:
    """Return the budget's entries with their amounts, optionally of one type."""
    where = ["e.budget_id = ?", "e.user_id = ?"]
    params: List[object] = [budget_id, acting_user]
    if entry_type is not None:
        where.append("e.entry_type = ?")
        params.append(EntryType(entry_type).value)
    clause = " AND ".join(where)

    with connect() as conn:
        _require_budget(conn, acting_user, budget_id)
        entry_rows = conn.execute(
            f"SELECT e.id, e.description, e.category_id, e.entry_type FROM entries e WHERE {clause} ORDER BY e.id",
            params,
        ).fetchall()
        amount_rows = conn.execute(
            "SELECT ea.id, ea.entry_id, ea.month, ea.amount FROM entry_amounts ea "
            f"JOIN entries e ON e.id = ea.entry_id WHERE {clause} ORDER BY ea.entry_id, ea.month",
            params,
        ).fetchall()

    amounts_by_entry: Dict[int, List[Dict[str, object]]] = {}
    for row in amount_rows:
        amounts_by_entry.setdefault(row['entry_id'], []).append(
            {'id': row['id'], 'month': row['month'], 'amount': row['amount']}
        )

    return [
        Entry.from_record({
            'id': row['id'],
            'description': row['description'],
            'category_id': row['category_id'],
            'entry_type': row['entry_type'],
            'entry_amounts': amounts_by_entry.get(row['id'], []),
        })
        for row in entry_rows
    ]


def fetch_entry(acting_user: str, entry_id: int) -> Entry:
    with connect() as conn:
        row = _require_entry(conn, acting_user, entry_id)
    budget_id = row['budget_id']
    for entry in fetch_entries(acting_user, budget_id):
        if entry.id == entry_id:
            return entry
    raise AuthorizationError(f"Entry {entry_id} is not accessible to user '{acting_user}'")


def _update_entry_field(acting_user: str, entry_id: int, column: str, value: object) -> None:
    with connect() as conn:
        _require_entry(conn, acting_user, entry_id)
        with conn:
            conn.execute(
                f"UPDATE entries SET {column} = ?, updated_at = ? WHERE id = ? AND user_id = ?",
                (value, _now(), entry_id, acting_user),
            )


def update_entry_description(acting_user: str, entry_id: int, description: str) -> None:
    text = (description or '').strip()
    if not text:
        raise ValueError("Description is required")
    _update_entry_field(acting_user, entry_id, 'description', text)


def update_entry_type(acting_user: str, entry_id: int, entry_type: EntryType | str) -> None:
    _update_entry_field(acting_user, entry_id, 'entry_type', EntryType(entry_type).value)


def update_entry_category(acting_user: str, entry_id: int, category_id: int) -> None:
    with connect() as conn:
        _require_category(conn, acting_user, category_id)
    _update_entry_field(acting_user, entry_id, 'category_id', category_id)


def update_entry_amount(acting_user: str, entry_id: int, month: int, amount: float) -> None:
    """Change one month's amount of an entry."""
    _check_month(month)
    value = _check_amount(amount)
    with connect() as conn:
        _require_entry(conn, acting_user, entry_id)
        with conn:
            conn.execute(
                "UPDATE entry_amounts SET amount = ? WHERE entry_id = ? AND month = ?",
                (value, entry_id, month),
            )
            conn.execute("UPDATE entries SET updated_at = ? WHERE id = ?", (_now(), entry_id))


def _checked_vector(amounts: Sequence[float], allow_empty: bool) -> List[float]:
    vector = [_check_amount(a) for a in monthly_vector(amounts)]
    if not allow_empty and not any(a > 0 for a in vector):
        raise ValueError("At least one month must have an amount > 0")
    return vector


def _changed_months(conn: sqlite3.Connection, entry_id: int, vector: Sequence[float]) -> List[tuple]:
    current = {
        row['month']: row['amount']
        for row in conn.execute(
            "SELECT month, amount FROM entry_amounts WHERE entry_id = ?", (entry_id,)
        ).fetchall()
    }
    return [(amount, entry_id, month) for month, amount in zip(MONTHS, vector) if current.get(month) != amount]


def update_entry_amounts(
    acting_user: str,
    entry_id: int,
    amounts: Sequence[float],
    *,
    allow_empty: bool = False,
) -> int:
    """Save an edited 12-month vector, writing only the months that changed.

    Returns:
        Number of months updated.

    Raises:
        ValueError: For bad amounts, or all-zero amounts unless ``allow_empty``.
    """
    vector = _checked_vector(amounts, allow_empty)
    with connect() as conn:
        _require_entry(conn, acting_user, entry_id)
        changed = _changed_months(conn, entry_id, vector)
        if changed:
            with conn:
                conn.executemany(
                    "UPDATE entry_amounts SET amount = ? WHERE entry_id = ? AND month = ?", changed
                )
                conn.execute("UPDATE entries SET updated_at = ? WHERE id = ?", (_now(), entry_id))
    return len(changed)


def update_entry(
    acting_user: str,
    entry_id: int,
    description: str,
    entry_type: EntryType | str,
    category_id: Optional[int],
    amounts: Sequence[float],
) -> None:
    """Save the edit form: all fields and changed months in one transaction."""
    text = (description or '').strip()
    if not text:
        raise ValueError("Description is required")
    kind = EntryType(entry_type)
    vector = _checked_vector(amounts, allow_empty=False)
    with connect() as conn:
        _require_entry(conn, acting_user, entry_id)
        if category_id is not None:
            _require_category(conn, acting_user, category_id)
        changed = _changed_months(conn, entry_id, vector)
        with conn:
            conn.execute(
                "UPDATE entries SET description = ?, entry_type = ?, category_id = ?, updated_at = ? "
                "WHERE id = ? AND user_id = ?",
                (text, kind.value, category_id, _now(), entry_id, acting_user),
            )
            conn.executemany(
                "UPDATE entry_amounts SET amount = ? WHERE entry_id = ? AND month = ?", changed
            )


def delete_entry(acting_user: str, entry_id: int) -> None:
    with connect() as conn:
        _require_entry(conn, acting_user, entry_id)
        with conn:
            conn.execute("DELETE FROM entries WHERE id = ? AND user_id = ?", (entry_id, acting_user))


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

def get_settings(acting_user: str) -> Settings:
    """Return the user's display settings, creating the defaults on first use."""
    with connect() as conn:
        row = conn.execute(
            "SELECT currency, locale FROM settings WHERE user_id = ?", (acting_user,)
        ).fetchone()
        if row is None:
            now = _now()
            with conn:
                conn.execute(
                    "INSERT INTO settings (user_id, currency, locale, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
                    (acting_user, DEFAULT_CURRENCY, DEFAULT_LOCALE, now, now),
                )
            return Settings(currency=DEFAULT_CURRENCY, locale=DEFAULT_LOCALE)
    return Settings(currency=row['currency'], locale=row['locale'])


def update_settings(
    acting_user: str,
    currency: Optional[str] = None,
    locale: Optional[str] = None,
) -> Settings:
    current = get_settings(acting_user)
    updated = Settings(
        currency=(currency or current.currency).strip().upper(),
        locale=(locale or current.locale).strip(),
    )
    with connect() as conn:
        with conn:
            conn.execute(
                "UPDATE settings SET currency = ?, locale = ?, updated_at = ? WHERE user_id = ?",
                (updated.currency, updated.locale, _now(), acting_user),
            )
    return updated
