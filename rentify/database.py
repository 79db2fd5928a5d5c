"""SQLite-backed stand-in for the remote data service.

The hosted deployment talks to Supabase; this module implements the same
:class:`rentify.backend.DataService` contract on a local SQLite file so the
application can be demoed, seeded, and tested offline.
"""
from __future__ import annotations

import logging
import re
import secrets
import sqlite3
import uuid
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

import anyio
from passlib.context import CryptContext

from .backend import APARTMENTS, APPLICATIONS, COMPLAINTS, USERS, ListQuery, validate_table
from .errors import AuthError, QueryError, UpdateError
from .models import Application, AuthSession, Identity, Role, User, parse_role

if TYPE_CHECKING:  # pragma: no cover
    from .config import SeedData

logger = logging.getLogger("rentify.database")

PASSWORD_MIN_LENGTH = 6

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

_COLUMNS: Dict[str, tuple[str, ...]] = {
    USERS: ("id", "full_name", "email", "role", "is_active", "created_at"),
    APARTMENTS: (
        "id",
        "landlord_id",
        "title",
        "description",
        "address",
        "city",
        "monthly_rent",
        "type",
        "is_published",
        "created_at",
    ),
    APPLICATIONS: ("id", "apartment_id", "tenant_id", "status", "message", "created_at"),
    COMPLAINTS: (
        "id",
        "complainant_id",
        "subject",
        "description",
        "status",
        "resolved_at",
        "created_at",
    ),
}

_BOOLEAN_COLUMNS = {"is_active", "is_published"}
_IMMUTABLE_COLUMNS = {"id", "created_at"}

_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the local database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "rentify.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


def _hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def _verify_password(password: str, hashed: str) -> bool:
    try:
        return _pwd_context.verify(password, hashed)
    except (ValueError, TypeError):
        return False


def _check_column(table: str, column: str) -> str:
    if column not in _COLUMNS[table]:
        raise ValueError(f"Unknown column '{column}' for table '{table}'")
    return column


class Database:
    """Simple wrapper around SQLite exposing the data service contract."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    full_name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    role TEXT NOT NULL CHECK (role IN ('tenant', 'landlord', 'admin')),
                    is_active INTEGER NOT NULL DEFAULT 1,
                    password_hash TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS apartments (
                    id TEXT PRIMARY KEY,
                    landlord_id TEXT REFERENCES users(id) ON DELETE SET NULL,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    address TEXT NOT NULL DEFAULT '',
                    city TEXT NOT NULL DEFAULT '',
                    monthly_rent REAL NOT NULL DEFAULT 0,
                    type TEXT NOT NULL DEFAULT 'studio',
                    is_published INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS applications (
                    id TEXT PRIMARY KEY,
                    apartment_id TEXT REFERENCES apartments(id) ON DELETE CASCADE,
                    tenant_id TEXT REFERENCES users(id) ON DELETE CASCADE,
                    status TEXT NOT NULL DEFAULT 'pending',
                    message TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS complaints (
                    id TEXT PRIMARY KEY,
                    complainant_id TEXT REFERENCES users(id) ON DELETE SET NULL,
                    subject TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    status TEXT NOT NULL DEFAULT 'open',
                    resolved_at TEXT,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS auth_sessions (
                    token TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_users_role ON users(role);
                CREATE INDEX IF NOT EXISTS idx_apartments_created_at ON apartments(created_at);
                CREATE INDEX IF NOT EXISTS idx_complaints_created_at ON complaints(created_at);
                """
            )

    # ------------------------------------------------------------------
    # Account management
    # ------------------------------------------------------------------
    def create_user(
        self,
        full_name: str,
        email: str,
        password: str,
        role: Role | str,
        *,
        is_active: bool = True,
        created_at: Optional[datetime] = None,
    ) -> User:
        """Create a new account and its profile row."""

        normalized_name = full_name.strip()
        if not normalized_name:
            raise ValueError("Full name must not be empty")
        normalized_email = email.strip().lower()
        if not _EMAIL_PATTERN.fullmatch(normalized_email):
            raise ValueError("Unable to validate email address: invalid format")
        if len(password) < PASSWORD_MIN_LENGTH:
            raise ValueError(f"Password should be at least {PASSWORD_MIN_LENGTH} characters")
        parsed_role = role if isinstance(role, Role) else parse_role(role)

        user_id = _new_id()
        created = created_at or _current_timestamp()

        with self._connect() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO users (id, full_name, email, role, is_active, password_hash, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        user_id,
                        normalized_name,
                        normalized_email,
                        parsed_role.value,
                        int(bool(is_active)),
                        _hash_password(password),
                        _serialize_datetime(created),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise ValueError("User already registered") from exc

        return User(
            id=user_id,
            full_name=normalized_name,
            email=normalized_email,
            role=parsed_role,
            is_active=bool(is_active),
            created_at=created,
        )

    def get_user(self, user_id: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return User.from_record(self._row_to_dict(USERS, row))

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?",
                (email.strip().lower(),),
            ).fetchone()
        if row is None:
            return None
        return User.from_record(self._row_to_dict(USERS, row))

    def list_users(self) -> List[User]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY created_at DESC, rowid DESC").fetchall()
        return [User.from_record(self._row_to_dict(USERS, row)) for row in rows]

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?",
                (email.strip().lower(),),
            ).fetchone()
        if row is None:
            return None
        stored_hash = row["password_hash"]
        if not stored_hash or not _verify_password(password, stored_hash):
            return None
        return User.from_record(self._row_to_dict(USERS, row))

    def create_auth_session(self, user_id: str) -> str:
        token = secrets.token_urlsafe(32)
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO auth_sessions (token, user_id, created_at) VALUES (?, ?, ?)",
                (token, user_id, _serialize_datetime(_current_timestamp())),
            )
        return token

    def resolve_auth_session(self, token: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT users.* FROM auth_sessions
                  JOIN users ON users.id = auth_sessions.user_id
                 WHERE auth_sessions.token = ?
                """,
                (token,),
            ).fetchone()
        if row is None:
            return None
        return User.from_record(self._row_to_dict(USERS, row))

    def delete_auth_session(self, token: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM auth_sessions WHERE token = ?", (token,))

    # ------------------------------------------------------------------
    # Listings, applications and complaints
    # ------------------------------------------------------------------
    def create_apartment(
        self,
        landlord_id: Optional[str],
        *,
        title: str,
        address: str = "",
        city: str = "",
        monthly_rent: float = 0.0,
        type: str = "studio",
        is_published: bool = False,
        description: str = "",
        created_at: Optional[datetime] = None,
    ) -> str:
        apartment_id = _new_id()
        created = created_at or _current_timestamp()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO apartments (
                    id, landlord_id, title, description, address, city,
                    monthly_rent, type, is_published, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    apartment_id,
                    landlord_id,
                    title,
                    description,
                    address,
                    city,
                    float(monthly_rent),
                    type,
                    int(bool(is_published)),
                    _serialize_datetime(created),
                ),
            )
        return apartment_id

    def create_application(
        self,
        apartment_id: str,
        tenant_id: str,
        *,
        status: str = "pending",
        message: str = "",
        created_at: Optional[datetime] = None,
    ) -> Application:
        """Record a tenant's application for a listing."""

        application_id = _new_id()
        created = created_at or _current_timestamp()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO applications (id, apartment_id, tenant_id, status, message, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (application_id, apartment_id, tenant_id, status, message, _serialize_datetime(created)),
            )
            row = conn.execute(
                f"SELECT {', '.join(_COLUMNS[APPLICATIONS])} FROM applications WHERE id = ?",
                (application_id,),
            ).fetchone()
        return Application.from_record(self._row_to_dict(APPLICATIONS, row))

    def create_complaint(
        self,
        complainant_id: Optional[str],
        *,
        subject: str,
        description: str = "",
        status: str = "open",
        created_at: Optional[datetime] = None,
    ) -> str:
        complaint_id = _new_id()
        created = created_at or _current_timestamp()
        resolved_at = _serialize_datetime(created) if status == "resolved" else None
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO complaints (id, complainant_id, subject, description, status, resolved_at, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    complaint_id,
                    complainant_id,
                    subject,
                    description,
                    status,
                    resolved_at,
                    _serialize_datetime(created),
                ),
            )
        return complaint_id

    def apply_seed(self, seed: "SeedData") -> Dict[str, int]:
        """Insert demo records, skipping users whose email already exists."""

        ids_by_email: Dict[str, str] = {}
        created_users = 0
        for entry in seed.users:
            existing = self.get_user_by_email(entry.email)
            if existing is not None:
                ids_by_email[existing.email] = existing.id
                continue
            user = self.create_user(
                entry.full_name,
                entry.email,
                entry.password,
                entry.role,
                is_active=entry.is_active,
            )
            ids_by_email[user.email] = user.id
            created_users += 1

        apartment_ids: Dict[str, str] = {}
        for listing in seed.apartments:
            apartment_ids[listing.title] = self.create_apartment(
                ids_by_email.get(listing.landlord_email),
                title=listing.title,
                address=listing.address,
                city=listing.city,
                monthly_rent=listing.monthly_rent,
                type=listing.type,
                is_published=listing.is_published,
                description=listing.description,
            )

        created_applications = 0
        for application in seed.applications:
            apartment_id = apartment_ids.get(application.apartment_title)
            tenant_id = ids_by_email.get(application.tenant_email)
            if apartment_id is None or tenant_id is None:
                logger.warning(
                    "Skipping seeded application for %s: unknown apartment or tenant",
                    application.apartment_title,
                )
                continue
            self.create_application(
                apartment_id,
                tenant_id,
                status=application.status,
                message=application.message,
            )
            created_applications += 1

        for complaint in seed.complaints:
            self.create_complaint(
                ids_by_email.get(complaint.complainant_email),
                subject=complaint.subject,
                description=complaint.description,
                status=complaint.status,
            )

        return {
            "users": created_users,
            "apartments": len(apartment_ids),
            "applications": created_applications,
            "complaints": len(seed.complaints),
        }

    # ------------------------------------------------------------------
    # Table-scoped queries
    # ------------------------------------------------------------------
    def count_rows(self, table: str, filters: Optional[Mapping[str, object]] = None) -> int:
        validate_table(table)
        where, values = self._where_clause(table, filters or {}, prefix="")
        with self._connect() as conn:
            row = conn.execute(f"SELECT COUNT(*) AS total FROM {table}{where}", values).fetchone()
        return int(row["total"])

    def list_rows(self, table: str, query: ListQuery) -> List[Dict[str, Any]]:
        validate_table(table)
        columns = ", ".join(f"t.{column}" for column in _COLUMNS[table])
        join_sql = ""
        join = query.join
        if join is not None:
            _check_column(table, join.foreign_key)
            validate_table(join.table)
            joined = ", ".join(
                f"j.{_check_column(join.table, name)} AS __join_{name}" for name in join.fields
            )
            columns = f"{columns}, j.id AS __join_id, {joined}"
            join_sql = f" LEFT JOIN {join.table} j ON j.id = t.{join.foreign_key}"

        where, values = self._where_clause(table, query.filters, prefix="t.")
        sql = f"SELECT {columns} FROM {table} t{join_sql}{where}"
        if query.order_by:
            direction = "DESC" if query.descending else "ASC"
            sql += f" ORDER BY t.{_check_column(table, query.order_by)} {direction}, t.rowid {direction}"
        if query.limit is not None:
            sql += " LIMIT ?"
            values.append(int(query.limit))

        with self._connect() as conn:
            rows = conn.execute(sql, values).fetchall()

        records: List[Dict[str, Any]] = []
        for row in rows:
            record = self._row_to_dict(table, row)
            if join is not None:
                if row["__join_id"] is None:
                    record[join.alias] = None
                else:
                    record[join.alias] = {name: row[f"__join_{name}"] for name in join.fields}
            records.append(record)
        return records

    def update_row(self, table: str, record_id: str, fields: Mapping[str, object]) -> Dict[str, Any]:
        validate_table(table)
        assignments: List[str] = []
        values: List[object] = []
        for key, value in fields.items():
            column = _check_column(table, key)
            if column in _IMMUTABLE_COLUMNS:
                raise ValueError(f"Column '{column}' cannot be updated")
            if column in _BOOLEAN_COLUMNS:
                value = int(bool(value))
            if table == USERS and column == "role":
                raise ValueError("Role cannot be changed after creation")
            assignments.append(f"{column} = ?")
            values.append(value)
        if not assignments:
            raise ValueError("No fields to update")

        values.append(record_id)
        with self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE {table} SET {', '.join(assignments)} WHERE id = ?",
                values,
            )
            if cursor.rowcount == 0:
                raise LookupError(f"No {table} record with id {record_id}")
            row = conn.execute(
                f"SELECT {', '.join(_COLUMNS[table])} FROM {table} WHERE id = ?",
                (record_id,),
            ).fetchone()
        return self._row_to_dict(table, row)

    # ------------------------------------------------------------------
    # DataService contract
    # ------------------------------------------------------------------
    async def count(
        self,
        table: str,
        filters: Optional[Mapping[str, object]] = None,
        *,
        access_token: Optional[str] = None,
    ) -> int:
        try:
            return await anyio.to_thread.run_sync(partial(self.count_rows, table, filters))
        except (sqlite3.Error, ValueError) as exc:
            raise QueryError(f"Failed to count {table}: {exc}", table=table) from exc

    async def list(
        self,
        table: str,
        query: ListQuery,
        *,
        access_token: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        try:
            return await anyio.to_thread.run_sync(partial(self.list_rows, table, query))
        except (sqlite3.Error, ValueError) as exc:
            raise QueryError(f"Failed to list {table}: {exc}", table=table) from exc

    async def update(
        self,
        table: str,
        record_id: str,
        fields: Mapping[str, object],
        *,
        access_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        try:
            return await anyio.to_thread.run_sync(partial(self.update_row, table, record_id, dict(fields)))
        except LookupError as exc:
            raise UpdateError(str(exc), table=table, record_id=record_id) from exc
        except (sqlite3.Error, ValueError) as exc:
            raise UpdateError(f"Failed to update {table}: {exc}", table=table, record_id=record_id) from exc

    async def sign_in(self, email: str, password: str) -> AuthSession:
        user = await anyio.to_thread.run_sync(self.authenticate_user, email, password)
        if user is None:
            raise AuthError("Invalid login credentials")
        token = await anyio.to_thread.run_sync(self.create_auth_session, user.id)
        return AuthSession(access_token=token, identity=self._identity_for(user))

    async def sign_up(
        self,
        email: str,
        password: str,
        *,
        full_name: str,
        role: Role,
    ) -> AuthSession:
        try:
            user = await anyio.to_thread.run_sync(partial(self.create_user, full_name, email, password, role))
        except ValueError as exc:
            raise AuthError(str(exc)) from exc
        token = await anyio.to_thread.run_sync(self.create_auth_session, user.id)
        return AuthSession(access_token=token, identity=self._identity_for(user))

    async def sign_out(self, access_token: str) -> None:
        await anyio.to_thread.run_sync(self.delete_auth_session, access_token)

    async def get_identity(self, access_token: str) -> Identity:
        user = await anyio.to_thread.run_sync(self.resolve_auth_session, access_token)
        if user is None:
            raise AuthError("Session expired. Please sign in again.")
        return self._identity_for(user)

    async def close(self) -> None:
        return None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _where_clause(
        self,
        table: str,
        filters: Mapping[str, object],
        *,
        prefix: str,
    ) -> tuple[str, List[object]]:
        clauses: List[str] = []
        values: List[object] = []
        for key, value in filters.items():
            column = _check_column(table, key)
            if value is None:
                clauses.append(f"{prefix}{column} IS NULL")
                continue
            if column in _BOOLEAN_COLUMNS:
                value = int(bool(value))
            clauses.append(f"{prefix}{column} = ?")
            values.append(value)
        if not clauses:
            return "", values
        return " WHERE " + " AND ".join(clauses), values

    def _row_to_dict(self, table: str, row: sqlite3.Row) -> Dict[str, Any]:
        record: Dict[str, Any] = {}
        for column in _COLUMNS[table]:
            value = row[column]
            if column in _BOOLEAN_COLUMNS and value is not None:
                value = bool(value)
            record[column] = value
        return record

    @staticmethod
    def _identity_for(user: User) -> Identity:
        return Identity(id=user.id, email=user.email, role=user.role, full_name=user.full_name)


__all__ = ["Database", "PASSWORD_MIN_LENGTH", "resolve_database_path"]
