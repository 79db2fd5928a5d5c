from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from rentify.application import create_application, create_backend
from rentify.config import Settings
from rentify.database import Database
from rentify.notifications import ERROR, MemoryNotifier, SessionNotifier, consume_flash
from rentify.supabase import SupabaseBackend


def test_create_backend_selects_local_database(tmp_path: Path) -> None:
    backend = create_backend(Settings(database_path=str(tmp_path / "app.sqlite3")))

    assert isinstance(backend, Database)
    assert (tmp_path / "app.sqlite3").exists()


def test_create_backend_selects_supabase() -> None:
    settings = Settings.from_env(
        {"RENTIFY_BACKEND": "supabase", "SUPABASE_URL": "https://p.supabase.co", "SUPABASE_ANON_KEY": "anon"}
    )
    backend = create_backend(settings)

    assert isinstance(backend, SupabaseBackend)
    asyncio.run(backend.close())


def test_create_backend_rejects_incomplete_supabase_settings() -> None:
    with pytest.raises(ValueError, match="SUPABASE_URL"):
        create_backend(Settings(backend="supabase", supabase_url="https://p.supabase.co"))


def test_create_application_requires_session_secret(tmp_path: Path) -> None:
    with pytest.raises(RuntimeError, match="RENTIFY_SESSION_SECRET"):
        create_application(settings=Settings(database_path=str(tmp_path / "app.sqlite3"), session_secret=""))

    app = create_application(
        settings=Settings(database_path=str(tmp_path / "app.sqlite3"), session_secret="secret")
    )
    with TestClient(app) as client:
        assert client.get("/").status_code == 200


def test_session_notifier_round_trip() -> None:
    session: dict = {}
    notifier = SessionNotifier(session)
    notifier.notify("First")
    notifier.notify("Second", category=ERROR)

    assert consume_flash(session) == [
        {"message": "First", "category": "info"},
        {"message": "Second", "category": "error"},
    ]
    assert consume_flash(session) == []


def test_memory_notifier_filters_by_category() -> None:
    notifier = MemoryNotifier()
    notifier.notify("ok", category="success")
    notifier.notify("bad", category=ERROR)

    assert [item.message for item in notifier.by_category(ERROR)] == ["bad"]
