"""Configuration management for the household budget app.

This module centralizes all configuration values including paths,
defaults, limits, and environment variable overrides.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

# Base project root - assumes this file is in household_budget/
_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Data directories
DATA_DIR = Path(os.getenv("HOUSEHOLD_BUDGET_DATA_DIR", _PROJECT_ROOT / "data"))

# Database
DB_PATH = Path(
    os.getenv("HOUSEHOLD_BUDGET_DB_PATH", DATA_DIR / "budget.db")
).resolve()

# Acting user for the local dashboard (authentication lives outside the app)
DEFAULT_USER = os.getenv("HOUSEHOLD_BUDGET_USER", "local")

LOG_LEVEL = os.getenv("HOUSEHOLD_BUDGET_LOG_LEVEL", "INFO").upper()

# CSV import limits
CSV_COLUMN_COUNT = 15
MAX_DESCRIPTION_LENGTH = 500
MAX_CATEGORY_LENGTH = 100

# Settings defaults for newly seen users
DEFAULT_CURRENCY = "DKK"
DEFAULT_LOCALE = "da-DK"


def ensure_data_directories() -> None:
    """Create all required data directories if they don't exist."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)


def get_db_path() -> str:
    """Get the database path as a string."""
    return str(DB_PATH)


def configure_logging(level: str | None = None) -> None:
    """Configure the package logger once, honouring HOUSEHOLD_BUDGET_LOG_LEVEL."""
    logger = logging.getLogger("household_budget")
    logger.setLevel(getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO))
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('%(levelname)s - %(name)s - %(message)s'))
        logger.addHandler(handler)
