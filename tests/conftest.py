from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from rentify.database import Database  # noqa: E402
from rentify.models import Role  # noqa: E402


ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-password"


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "rentify.sqlite3")
    db.initialize()
    return db


@pytest.fixture()
def admin(database: Database):
    return database.create_user("Site Admin", ADMIN_EMAIL, ADMIN_PASSWORD, Role.ADMIN)


@pytest.fixture()
def base_time() -> datetime:
    return datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
