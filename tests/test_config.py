from __future__ import annotations

from pathlib import Path

import pytest

from rentify.config import (
    BACKEND_SQLITE,
    BACKEND_SUPABASE,
    SeedData,
    Settings,
    load_seed_data,
    resolve_seed_path,
)
from rentify.models import Role

ROOT = Path(__file__).resolve().parents[1]


def test_settings_default_to_local_backend() -> None:
    settings = Settings.from_env({})

    assert settings.backend == BACKEND_SQLITE
    assert settings.secure_cookies is False
    assert settings.http_timeout == 10.0


def test_supabase_backend_requires_credentials() -> None:
    with pytest.raises(ValueError, match="SUPABASE_URL"):
        Settings.from_env({"RENTIFY_BACKEND": "supabase"})

    settings = Settings.from_env(
        {
            "RENTIFY_BACKEND": "Supabase",
            "SUPABASE_URL": "https://project.supabase.co/",
            "SUPABASE_ANON_KEY": "anon",
            "RENTIFY_SESSION_SECURE": "yes",
            "RENTIFY_HTTP_TIMEOUT": "2.5",
        }
    )
    assert settings.backend == BACKEND_SUPABASE
    assert settings.supabase_url == "https://project.supabase.co"
    assert settings.secure_cookies is True
    assert settings.http_timeout == 2.5


def test_invalid_backend_and_timeout_are_rejected() -> None:
    with pytest.raises(ValueError):
        Settings.from_env({"RENTIFY_BACKEND": "postgres"})
    with pytest.raises(ValueError):
        Settings.from_env({"RENTIFY_HTTP_TIMEOUT": "soon"})
    with pytest.raises(ValueError):
        Settings.from_env({"RENTIFY_HTTP_TIMEOUT": "0"})


def test_seed_data_requires_linking_fields() -> None:
    with pytest.raises(ValueError, match="landlord"):
        SeedData.from_dict({"apartments": [{"title": "Loft"}]})
    with pytest.raises(ValueError):
        SeedData.from_dict({"users": [{"full_name": "X", "email": "x@example.com", "password": "p", "role": "owner"}]})
    with pytest.raises(ValueError):
        SeedData.from_dict({"users": {"full_name": "X"}})


def test_bundled_seed_file_loads() -> None:
    seed_path = resolve_seed_path(None)
    assert seed_path == (ROOT / "config" / "seed.yaml").resolve()

    seed = load_seed_data(seed_path)
    assert any(user.role is Role.ADMIN for user in seed.users)
    assert seed.apartments
    assert seed.complaints


def test_seed_file_must_be_a_mapping(tmp_path: Path) -> None:
    seed_path = tmp_path / "seed.yaml"
    seed_path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_seed_data(seed_path)
