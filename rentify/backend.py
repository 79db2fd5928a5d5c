"""Client contract for the remote data service.

Both the hosted Supabase client and the local SQLite stand-in implement
:class:`DataService`.  Records cross this boundary as plain mappings and are
turned into typed records by :mod:`rentify.models`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple, runtime_checkable

from .models import AuthSession, Identity, Role

USERS = "users"
APARTMENTS = "apartments"
APPLICATIONS = "applications"
COMPLAINTS = "complaints"

TABLES: Tuple[str, ...] = (USERS, APARTMENTS, APPLICATIONS, COMPLAINTS)


@dataclass(frozen=True)
class Join:
    """Resolve ``foreign_key`` to ``fields`` of the referenced user, exposed as ``alias``."""

    alias: str
    foreign_key: str
    fields: Tuple[str, ...] = ("full_name", "email")
    table: str = USERS


@dataclass(frozen=True)
class ListQuery:
    filters: Mapping[str, object] = field(default_factory=dict)
    join: Optional[Join] = None
    order_by: Optional[str] = "created_at"
    descending: bool = True
    limit: Optional[int] = None


@runtime_checkable
class DataService(Protocol):
    async def count(
        self,
        table: str,
        filters: Optional[Mapping[str, object]] = None,
        *,
        access_token: Optional[str] = None,
    ) -> int: ...

    async def list(
        self,
        table: str,
        query: ListQuery,
        *,
        access_token: Optional[str] = None,
    ) -> List[Dict[str, Any]]: ...

    async def update(
        self,
        table: str,
        record_id: str,
        fields: Mapping[str, object],
        *,
        access_token: Optional[str] = None,
    ) -> Dict[str, Any]: ...

    async def sign_in(self, email: str, password: str) -> AuthSession: ...

    async def sign_up(
        self,
        email: str,
        password: str,
        *,
        full_name: str,
        role: Role,
    ) -> AuthSession: ...

    async def sign_out(self, access_token: str) -> None: ...

    async def get_identity(self, access_token: str) -> Identity: ...

    async def close(self) -> None: ...


def validate_table(table: str) -> str:
    if table not in TABLES:
        raise ValueError(f"Unknown table '{table}'")
    return table


__all__ = [
    "APARTMENTS",
    "APPLICATIONS",
    "COMPLAINTS",
    "DataService",
    "Join",
    "ListQuery",
    "TABLES",
    "USERS",
    "validate_table",
]
