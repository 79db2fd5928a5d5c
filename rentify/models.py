"""Typed records for the entities owned by the remote data service."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

logger = logging.getLogger("rentify.models")


class Role(str, Enum):
    """Account role, fixed when the account is created."""

    TENANT = "tenant"
    LANDLORD = "landlord"
    ADMIN = "admin"


class ComplaintStatus(str, Enum):
    """Lifecycle state of a complaint ticket."""

    OPEN = "open"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


# Statuses an admin may move a complaint to from the dashboard.
COMPLAINT_TARGET_STATUSES: Tuple[ComplaintStatus, ...] = (
    ComplaintStatus.INVESTIGATING,
    ComplaintStatus.RESOLVED,
    ComplaintStatus.DISMISSED,
)


def parse_role(value: object) -> Role:
    """Return the :class:`Role` for ``value`` or raise ``ValueError``."""

    try:
        return Role(str(value).strip().lower())
    except ValueError as exc:
        raise ValueError(f"Unknown role '{value}'") from exc


def parse_complaint_status(value: object) -> ComplaintStatus:
    try:
        return ComplaintStatus(str(value).strip().lower())
    except ValueError as exc:
        raise ValueError(f"Unknown complaint status '{value}'") from exc


def _parse_datetime(value: object) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_bool(value: object, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    lowered = str(value).strip().lower()
    if lowered in {"1", "true", "yes", "on", "t"}:
        return True
    if lowered in {"0", "false", "no", "off", "f"}:
        return False
    return default


def _parse_float(value: object) -> float:
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0


def _text(value: object, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _require_id(data: Mapping[str, Any], entity: str) -> str:
    raw = data.get("id")
    if raw is None or str(raw).strip() == "":
        raise ValueError(f"{entity} record is missing an identifier")
    return str(raw)


@dataclass(frozen=True)
class PartyRef:
    """Denormalised name/email of a referenced user."""

    full_name: str
    email: str

    @staticmethod
    def from_record(data: object) -> Optional["PartyRef"]:
        if isinstance(data, list):
            data = data[0] if data else None
        if not isinstance(data, Mapping):
            return None
        return PartyRef(full_name=_text(data.get("full_name")), email=_text(data.get("email")))


@dataclass(frozen=True)
class User:
    """A user profile row."""

    id: str
    full_name: str
    email: str
    role: Role
    is_active: bool = True
    created_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @staticmethod
    def from_record(data: Mapping[str, Any]) -> "User":
        user_id = _require_id(data, "User")
        try:
            role = parse_role(data.get("role"))
        except ValueError:
            logger.warning("User %s has unrecognised role %r; treating as tenant", user_id, data.get("role"))
            role = Role.TENANT
        return User(
            id=user_id,
            full_name=_text(data.get("full_name")),
            email=_text(data.get("email")),
            role=role,
            is_active=_parse_bool(data.get("is_active"), True),
            created_at=_parse_datetime(data.get("created_at")),
        )


@dataclass(frozen=True)
class Apartment:
    """A rental listing with its landlord joined in."""

    id: str
    title: str
    address: str
    city: str
    monthly_rent: float
    type: str
    is_published: bool
    landlord_id: Optional[str] = None
    landlord: Optional[PartyRef] = None
    created_at: Optional[datetime] = None

    @staticmethod
    def from_record(data: Mapping[str, Any]) -> "Apartment":
        landlord_id = data.get("landlord_id")
        return Apartment(
            id=_require_id(data, "Apartment"),
            title=_text(data.get("title")),
            address=_text(data.get("address")),
            city=_text(data.get("city")),
            monthly_rent=_parse_float(data.get("monthly_rent")),
            type=_text(data.get("type"), "other").strip().lower() or "other",
            is_published=_parse_bool(data.get("is_published"), False),
            landlord_id=str(landlord_id) if landlord_id is not None else None,
            landlord=PartyRef.from_record(data.get("landlord")),
            created_at=_parse_datetime(data.get("created_at")),
        )


@dataclass(frozen=True)
class Application:
    """A rental application submitted by a tenant."""

    id: str
    status: str
    apartment_id: Optional[str] = None
    tenant_id: Optional[str] = None
    message: str = ""
    created_at: Optional[datetime] = None

    @staticmethod
    def from_record(data: Mapping[str, Any]) -> "Application":
        apartment_id = data.get("apartment_id")
        tenant_id = data.get("tenant_id")
        return Application(
            id=_require_id(data, "Application"),
            status=_text(data.get("status"), "pending"),
            apartment_id=str(apartment_id) if apartment_id is not None else None,
            tenant_id=str(tenant_id) if tenant_id is not None else None,
            message=_text(data.get("message")),
            created_at=_parse_datetime(data.get("created_at")),
        )


@dataclass(frozen=True)
class Complaint:
    """A complaint ticket with the complainant joined in."""

    id: str
    subject: str
    description: str
    status: ComplaintStatus = ComplaintStatus.OPEN
    complainant_id: Optional[str] = None
    complainant: Optional[PartyRef] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @staticmethod
    def from_record(data: Mapping[str, Any]) -> "Complaint":
        complaint_id = _require_id(data, "Complaint")
        raw_status = data.get("status")
        if raw_status in (None, ""):
            status = ComplaintStatus.OPEN
        else:
            try:
                status = parse_complaint_status(raw_status)
            except ValueError:
                logger.warning("Complaint %s has unrecognised status %r; treating as open", complaint_id, raw_status)
                status = ComplaintStatus.OPEN
        complainant_id = data.get("complainant_id")
        return Complaint(
            id=complaint_id,
            subject=_text(data.get("subject")),
            description=_text(data.get("description")),
            status=status,
            complainant_id=str(complainant_id) if complainant_id is not None else None,
            complainant=PartyRef.from_record(data.get("complainant")),
            resolved_at=_parse_datetime(data.get("resolved_at")),
            created_at=_parse_datetime(data.get("created_at")),
        )


@dataclass(frozen=True)
class Identity:
    """The authenticated principal of a session."""

    id: str
    email: str
    role: Role
    full_name: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass(frozen=True)
class AuthSession:
    """Access token and identity returned by the auth provider."""

    access_token: str
    identity: Identity


@dataclass(frozen=True)
class DashboardStats:
    total_users: int = 0
    total_landlords: int = 0
    total_tenants: int = 0
    total_apartments: int = 0
    total_applications: int = 0
    total_complaints: int = 0


@dataclass(frozen=True)
class Snapshot:
    """Counts plus the joined lists rendered by the admin dashboard."""

    stats: DashboardStats = field(default_factory=DashboardStats)
    users: Tuple[User, ...] = ()
    apartments: Tuple[Apartment, ...] = ()
    complaints: Tuple[Complaint, ...] = ()
    loaded_at: Optional[datetime] = None


__all__ = [
    "Apartment",
    "Application",
    "AuthSession",
    "COMPLAINT_TARGET_STATUSES",
    "Complaint",
    "ComplaintStatus",
    "DashboardStats",
    "Identity",
    "PartyRef",
    "Role",
    "Snapshot",
    "User",
    "parse_complaint_status",
    "parse_role",
]
