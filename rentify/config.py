"""Configuration loading for the Rentify service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import yaml

from .models import Role, parse_complaint_status, parse_role

BACKEND_SQLITE = "sqlite"
BACKEND_SUPABASE = "supabase"

DEFAULT_HTTP_TIMEOUT = 10.0


def _env_flag(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Runtime settings resolved from the environment."""

    backend: str = BACKEND_SQLITE
    database_path: Optional[str] = None
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    session_secret: Optional[str] = None
    secure_cookies: bool = False
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    @staticmethod
    def from_env(environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ

        backend = (env.get("RENTIFY_BACKEND") or BACKEND_SQLITE).strip().lower()
        if backend not in {BACKEND_SQLITE, BACKEND_SUPABASE}:
            raise ValueError(f"Unsupported RENTIFY_BACKEND '{backend}'; expected 'sqlite' or 'supabase'")

        supabase_url = (env.get("SUPABASE_URL") or "").strip().rstrip("/") or None
        supabase_key = (env.get("SUPABASE_ANON_KEY") or "").strip() or None
        if backend == BACKEND_SUPABASE and (not supabase_url or not supabase_key):
            raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY must be set when RENTIFY_BACKEND=supabase")

        raw_timeout = env.get("RENTIFY_HTTP_TIMEOUT")
        try:
            timeout = float(raw_timeout) if raw_timeout else DEFAULT_HTTP_TIMEOUT
        except ValueError as exc:
            raise ValueError(f"RENTIFY_HTTP_TIMEOUT must be a number, got '{raw_timeout}'") from exc
        if timeout <= 0:
            raise ValueError("RENTIFY_HTTP_TIMEOUT must be positive")

        return Settings(
            backend=backend,
            database_path=env.get("RENTIFY_DB_PATH") or None,
            supabase_url=supabase_url,
            supabase_key=supabase_key,
            session_secret=env.get("RENTIFY_SESSION_SECRET") or None,
            secure_cookies=_env_flag(env.get("RENTIFY_SESSION_SECURE"), False),
            http_timeout=timeout,
        )


def load_settings() -> Settings:
    return Settings.from_env()


@dataclass(frozen=True)
class SeedUser:
    full_name: str
    email: str
    password: str
    role: Role
    is_active: bool = True

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "SeedUser":
        required_fields = {"full_name", "email", "password", "role"}
        missing = required_fields - data.keys()
        if missing:
            raise ValueError(f"Missing required user fields: {', '.join(sorted(missing))}")
        return SeedUser(
            full_name=str(data["full_name"]),
            email=str(data["email"]).strip().lower(),
            password=str(data["password"]),
            role=parse_role(data["role"]),
            is_active=bool(data.get("is_active", True)),
        )


@dataclass(frozen=True)
class SeedApartment:
    title: str
    landlord_email: str
    address: str = ""
    city: str = ""
    monthly_rent: float = 0.0
    type: str = "studio"
    is_published: bool = False
    description: str = ""

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "SeedApartment":
        missing = {"title", "landlord"} - data.keys()
        if missing:
            raise ValueError(f"Missing required apartment fields: {', '.join(sorted(missing))}")
        return SeedApartment(
            title=str(data["title"]),
            landlord_email=str(data["landlord"]).strip().lower(),
            address=str(data.get("address", "")),
            city=str(data.get("city", "")),
            monthly_rent=float(data.get("monthly_rent", 0) or 0),  # type: ignore[arg-type]
            type=str(data.get("type", "studio")),
            is_published=bool(data.get("is_published", False)),
            description=str(data.get("description", "")),
        )


@dataclass(frozen=True)
class SeedApplication:
    apartment_title: str
    tenant_email: str
    status: str = "pending"
    message: str = ""

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "SeedApplication":
        missing = {"apartment", "tenant"} - data.keys()
        if missing:
            raise ValueError(f"Missing required application fields: {', '.join(sorted(missing))}")
        return SeedApplication(
            apartment_title=str(data["apartment"]),
            tenant_email=str(data["tenant"]).strip().lower(),
            status=str(data.get("status", "pending")),
            message=str(data.get("message", "")),
        )


@dataclass(frozen=True)
class SeedComplaint:
    subject: str
    complainant_email: str
    description: str = ""
    status: str = "open"

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "SeedComplaint":
        missing = {"subject", "complainant"} - data.keys()
        if missing:
            raise ValueError(f"Missing required complaint fields: {', '.join(sorted(missing))}")
        return SeedComplaint(
            subject=str(data["subject"]),
            complainant_email=str(data["complainant"]).strip().lower(),
            description=str(data.get("description", "")),
            status=parse_complaint_status(data.get("status", "open")).value,
        )


@dataclass(frozen=True)
class SeedData:
    """Demo records loaded into the local database."""

    users: List[SeedUser] = field(default_factory=list)
    apartments: List[SeedApartment] = field(default_factory=list)
    applications: List[SeedApplication] = field(default_factory=list)
    complaints: List[SeedComplaint] = field(default_factory=list)

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "SeedData":
        def _entries(key: str) -> List[Dict[str, object]]:
            raw = data.get(key) or []
            if not isinstance(raw, list):
                raise ValueError(f"Seed section '{key}' must be a list")
            return raw

        return SeedData(
            users=[SeedUser.from_dict(item) for item in _entries("users")],
            apartments=[SeedApartment.from_dict(item) for item in _entries("apartments")],
            applications=[SeedApplication.from_dict(item) for item in _entries("applications")],
            complaints=[SeedComplaint.from_dict(item) for item in _entries("complaints")],
        )


def load_seed_data(seed_path: Path) -> SeedData:
    """Load demo records from a YAML file."""
    with seed_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError("Seed file must contain a mapping at the top level")
    return SeedData.from_dict(raw)


def resolve_seed_path(env_value: Optional[str]) -> Path:
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path(__file__).resolve().parent.parent / "config" / "seed.yaml").resolve(strict=False)


__all__ = [
    "BACKEND_SQLITE",
    "BACKEND_SUPABASE",
    "SeedApartment",
    "SeedApplication",
    "SeedComplaint",
    "SeedData",
    "SeedUser",
    "Settings",
    "load_seed_data",
    "load_settings",
    "resolve_seed_path",
]
