"""CSV import for budget entries.

A budget CSV has a header line followed by one row per entry with 15
columns: Description, Category, Type (income/expense) and the amounts
for January to December.  Import happens in three steps:

* :func:`read_csv_rows` tokenizes the file with pandas,
* :func:`validate_csv_rows` checks every row and collects the
  categories that do not exist yet,
* :func:`import_csv_rows` creates those categories and writes the valid
  rows into a budget, one entry at a time.
"""

from __future__ import annotations

import logging
import math
import sqlite3
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

import pandas as pd

from . import db
from .config import CSV_COLUMN_COUNT, MAX_CATEGORY_LENGTH, MAX_DESCRIPTION_LENGTH
from .exceptions import CSVImportError
from .models import MONTHS, CSVValidationResult, EntryType, ParsedCSVRow

logger = logging.getLogger(__name__)

RawRow = Union[Sequence[Any], Mapping[str, Any]]


def read_csv_rows(source: Any) -> List[List[str]]:
    """Tokenize a CSV file into rows of string cells, header removed.

    ``source`` is anything :func:`pandas.read_csv` accepts (a path or an
    uploaded file object).  Rows shorter than the header are padded with
    empty cells and cells past the header width, such as the empty cell
    after a trailing delimiter, are dropped.

    Raises:
        CSVImportError: If the file cannot be tokenized.
    """
    try:
        df = pd.read_csv(
            source,
            header=0,
            index_col=False,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError:
        return []
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        raise CSVImportError(f"CSV parsing failed: {e}") from e
    return df.fillna('').astype(str).values.tolist()


def _cells(row: RawRow) -> List[str]:
    values: Iterable[Any] = row.values() if isinstance(row, Mapping) else row
    return ['' if value is None else str(value).strip() for value in values]


def _parse_amount(cell: str) -> Optional[float]:
    try:
        value = float(cell)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def _validate_row(row_num: int, row: RawRow) -> Union[ParsedCSVRow, str]:
    """Return the parsed row, or the first error message for it."""
    columns = _cells(row)
    if len(columns) < CSV_COLUMN_COUNT:
        return (
            f"Row {row_num}: Expected {CSV_COLUMN_COUNT} columns "
            f"(Description, Category, Type, + 12 months), got {len(columns)}"
        )

    description, category = columns[0], columns[1]
    entry_type = columns[2].lower()
    month_values = columns[3:CSV_COLUMN_COUNT]

    if not description:
        return f"Row {row_num}: Missing description (column 1)"
    if len(description) > MAX_DESCRIPTION_LENGTH:
        return f"Row {row_num}: Description too long (max {MAX_DESCRIPTION_LENGTH} characters)"
    if not category:
        return f"Row {row_num}: Missing category (column 2)"
    if len(category) > MAX_CATEGORY_LENGTH:
        return f"Row {row_num}: Category too long (max {MAX_CATEGORY_LENGTH} characters)"
    if entry_type not in (EntryType.INCOME.value, EntryType.EXPENSE.value):
        return f"Row {row_num}: Type must be 'income' or 'expense', got '{entry_type}' (column 3)"

    monthly_amounts = {}
    for month, cell in zip(MONTHS, month_values):
        amount = _parse_amount(cell)
        if amount is None:
            return f"Row {row_num}: Invalid amount for month {month}: '{cell}'"
        if amount < 0:
            return f"Row {row_num}: Amount for month {month} cannot be negative"
        monthly_amounts[month] = amount

    if not any(amount > 0 for amount in monthly_amounts.values()):
        return f"Row {row_num}: At least one month must have an amount > 0"

    return ParsedCSVRow(
        description=description,
        category=category,
        type=EntryType(entry_type),
        monthly_amounts=monthly_amounts,
    )


def validate_csv_rows(
    raw_rows: Sequence[RawRow],
    existing_category_names: Iterable[str] = (),
) -> CSVValidationResult:
    """Validate raw CSV rows and find categories that need creating.

    Each row reports at most one error (its first failing check) and is
    left out of ``valid_rows``.  ``missing_categories`` only considers
    valid rows and keeps first-seen order.

    Example:
        >>> result = validate_csv_rows([['Bonus', 'Other', 'income', 1000] + [0] * 11])
        >>> result.missing_categories, result.errors
        (['Other'], [])
    """
    result = CSVValidationResult()
    if len(raw_rows) == 0:
        result.errors.append("CSV file is empty")
        return result

    existing = set(existing_category_names)
    missing = {}
    for index, row in enumerate(raw_rows):
        parsed = _validate_row(index + 1, row)
        if isinstance(parsed, str):
            result.errors.append(parsed)
            continue
        if parsed.category not in existing:
            missing.setdefault(parsed.category, None)
        result.valid_rows.append(parsed)

    result.missing_categories = list(missing)
    return result


def import_csv_rows(
    acting_user: str,
    budget_id: int,
    valid_rows: Sequence[ParsedCSVRow],
    missing_categories: Sequence[str] = (),
) -> int:
    """Write validated rows into a budget.

    Missing categories are created first, then each row becomes an entry
    with its 12 amounts.  Rows are written one at a time; the first
    failure stops the import and rows written before it stay in place.

    Returns:
        Number of entries created.

    Raises:
        AuthorizationError: If the budget is not the user's.
        CSVImportError: If a category or entry cannot be written.
    """
    db.fetch_budget(acting_user, budget_id)

    existing = {c.name: c.id for c in db.fetch_categories(acting_user)}
    imported = 0
    try:
        for name in missing_categories:
            if name not in existing:
                existing[name] = db.create_category(acting_user, name)
        for row in valid_rows:
            category_id = existing.get(row.category)
            if category_id is None:
                category_id = db.create_category(acting_user, row.category)
                existing[row.category] = category_id
            db.create_entry(
                acting_user,
                budget_id,
                category_id,
                row.description,
                row.type,
                row.amounts,
            )
            imported += 1
    except (sqlite3.Error, ValueError) as e:
        logger.exception("CSV import into budget %s stopped after %d rows", budget_id, imported)
        raise CSVImportError(f"Failed to import CSV rows ({imported} imported before the error)") from e

    logger.info("Imported %d CSV rows into budget %s", imported, budget_id)
    return imported
