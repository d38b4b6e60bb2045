from __future__ import annotations

import pytest

from household_budget import config, db


@pytest.fixture
def budget_db(tmp_path, monkeypatch: pytest.MonkeyPatch):
    """Point the storage layer at a fresh SQLite file."""
    db_path = tmp_path / "budget.db"
    monkeypatch.setattr(config, "DATA_DIR", tmp_path)
    monkeypatch.setattr(db, "DB_PATH", str(db_path))
    db.init_db()
    return db_path
