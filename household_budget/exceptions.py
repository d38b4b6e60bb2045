"""Exception types raised by the budget services."""

from __future__ import annotations


class BudgetError(Exception):
    """Base class for budget application errors."""


class AuthorizationError(BudgetError):
    """The acting user does not own the requested budget, entry or category."""


class TransferError(BudgetError):
    """Copying rows or the balance between budgets failed."""


class CSVImportError(BudgetError):
    """Reading or importing a CSV file failed."""
