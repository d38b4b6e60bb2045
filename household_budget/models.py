"""Domain records shared by the budget engine and the persistence layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

MONTHS = tuple(range(1, 13))


class EntryType(str, Enum):
    INCOME = 'income'
    EXPENSE = 'expense'

    @property
    def sign(self) -> int:
        return 1 if self is EntryType.INCOME else -1


def monthly_vector(values: Sequence[float]) -> List[float]:
    """Return ``values`` as a list of 12 floats, one per calendar month.

    Raises:
        ValueError: If the sequence does not hold exactly 12 values.
    """
    vector = [float(v) for v in values]
    if len(vector) != len(MONTHS):
        raise ValueError(f"Expected 12 monthly amounts, got {len(vector)}")
    return vector


@dataclass
class Category:
    id: int
    name: str
    sort_order: int = 0


@dataclass
class Budget:
    id: int
    year: int
    name: str
    starting_balance: float = 0.0


@dataclass
class Settings:
    currency: str
    locale: str


@dataclass(frozen=True)
class EntryAmount:
    month: int
    amount: float
    id: Optional[int] = None


@dataclass
class Entry:
    """One budget line with exactly one amount per calendar month."""

    id: Optional[int]
    description: str
    category_id: Optional[int]
    entry_type: EntryType
    entry_amounts: List[EntryAmount] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.entry_type = EntryType(self.entry_type)
        months = [ea.month for ea in self.entry_amounts]
        if sorted(months) != list(MONTHS):
            raise ValueError(
                f"Entry {self.id!r} must have one amount per month 1-12, got months {sorted(months)}"
            )
        self.entry_amounts = sorted(self.entry_amounts, key=lambda ea: ea.month)

    @property
    def amounts(self) -> List[float]:
        """Monthly amounts ordered January to December."""
        return [ea.amount for ea in self.entry_amounts]

    @property
    def total(self) -> float:
        """Unsigned sum of the 12 amounts."""
        return sum(self.amounts)

    @property
    def row_total(self) -> float:
        """Sum of the 12 amounts, signed by the entry type."""
        return self.entry_type.sign * self.total

    @classmethod
    def from_amounts(
        cls,
        description: str,
        category_id: Optional[int],
        entry_type: EntryType | str,
        amounts: Sequence[float],
        id: Optional[int] = None,
    ) -> 'Entry':
        vector = monthly_vector(amounts)
        return cls(
            id=id,
            description=description,
            category_id=category_id,
            entry_type=EntryType(entry_type),
            entry_amounts=[EntryAmount(month=m, amount=a) for m, a in zip(MONTHS, vector)],
        )

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> 'Entry':
        """Build an entry from a storage record with nested ``entry_amounts``."""
        amounts = [
            EntryAmount(
                month=int(ea['month']),
                amount=float(ea['amount']),
                id=ea.get('id'),
            )
            for ea in record.get('entry_amounts') or []
        ]
        return cls(
            id=record.get('id'),
            description=record['description'],
            category_id=record.get('category_id'),
            entry_type=EntryType(record['entry_type']),
            entry_amounts=amounts,
        )


@dataclass
class ParsedCSVRow:
    description: str
    category: str
    type: EntryType
    monthly_amounts: Dict[int, float]

    @property
    def amounts(self) -> List[float]:
        return [self.monthly_amounts[m] for m in MONTHS]


@dataclass
class CSVValidationResult:
    valid_rows: List[ParsedCSVRow] = field(default_factory=list)
    missing_categories: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def can_import(self) -> bool:
        """An import may only proceed once every row validates."""
        return not self.errors and bool(self.valid_rows)
