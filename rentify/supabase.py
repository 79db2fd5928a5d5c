"""HTTP client for the hosted Supabase backend (PostgREST + GoTrue)."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx

from .backend import USERS, ListQuery, validate_table
from .errors import AuthError, QueryError, UpdateError
from .models import AuthSession, Identity, Role, parse_role

logger = logging.getLogger("rentify.supabase")

REST_PREFIX = "/rest/v1"
AUTH_PREFIX = "/auth/v1"


def _normalize_base_url(base_url: str) -> str:
    cleaned = (base_url or "").strip()
    if not cleaned:
        raise ValueError("Supabase URL must not be empty")
    return cleaned.rstrip("/")


def _extract_error_message(payload: object, default: str) -> str:
    if isinstance(payload, dict):
        for key in ("msg", "message", "error_description", "detail", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    if isinstance(payload, str) and payload.strip():
        return payload.strip()
    return default


def _response_message(response: httpx.Response, default: str) -> str:
    try:
        parsed = response.json()
    except ValueError:
        parsed = response.text
    return _extract_error_message(parsed, default)


def _filter_value(value: object) -> str:
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{'true' if value else 'false'}"
    return f"eq.{value}"


def _parse_content_range(header: Optional[str]) -> int:
    """Return the total from a ``Content-Range`` header such as ``0-9/42`` or ``*/42``."""

    if not header or "/" not in header:
        raise ValueError(f"Missing total in Content-Range header: {header!r}")
    total = header.rsplit("/", 1)[1].strip()
    if total == "*":
        raise ValueError("Data service did not report an exact count")
    return int(total)


def _identity_from_payload(payload: Mapping[str, Any]) -> Identity:
    user_id = payload.get("id")
    if not user_id:
        raise AuthError("Authentication response did not include a user")
    metadata = payload.get("user_metadata")
    if not isinstance(metadata, Mapping):
        metadata = {}
    try:
        role = parse_role(metadata.get("role"))
    except ValueError as exc:
        raise AuthError("This account does not have a valid role") from exc
    return Identity(
        id=str(user_id),
        email=str(payload.get("email") or ""),
        role=role,
        full_name=str(metadata.get("full_name") or ""),
    )


class SupabaseBackend:
    """Implements :class:`rentify.backend.DataService` over the Supabase REST APIs."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        cleaned_key = (api_key or "").strip()
        if not cleaned_key:
            raise ValueError("Supabase API key must not be empty")
        self._api_key = cleaned_key
        self._client = httpx.AsyncClient(
            base_url=_normalize_base_url(base_url),
            timeout=timeout,
            transport=transport,
            headers={"apikey": cleaned_key},
        )

    def _headers(self, access_token: Optional[str], **extra: str) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {access_token or self._api_key}"}
        headers.update(extra)
        return headers

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------
    async def count(
        self,
        table: str,
        filters: Optional[Mapping[str, object]] = None,
        *,
        access_token: Optional[str] = None,
    ) -> int:
        validate_table(table)
        params = {"select": "id"}
        for key, value in (filters or {}).items():
            params[key] = _filter_value(value)

        try:
            response = await self._client.head(
                f"{REST_PREFIX}/{table}",
                params=params,
                headers=self._headers(access_token, Prefer="count=exact"),
            )
        except httpx.RequestError as exc:
            raise QueryError(f"Failed to contact data service: {exc}", table=table) from exc

        if response.status_code >= 400:
            raise QueryError(
                f"Count query on {table} failed with status {response.status_code}",
                table=table,
            )
        try:
            return _parse_content_range(response.headers.get("content-range"))
        except ValueError as exc:
            raise QueryError(str(exc), table=table) from exc

    async def list(
        self,
        table: str,
        query: ListQuery,
        *,
        access_token: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        validate_table(table)
        select = "*"
        if query.join is not None:
            join = query.join
            select = f"*,{join.alias}:{join.foreign_key}({','.join(join.fields)})"
        params: Dict[str, str] = {"select": select}
        for key, value in query.filters.items():
            params[key] = _filter_value(value)
        if query.order_by:
            params["order"] = f"{query.order_by}.{'desc' if query.descending else 'asc'}"
        if query.limit is not None:
            params["limit"] = str(int(query.limit))

        try:
            response = await self._client.get(
                f"{REST_PREFIX}/{table}",
                params=params,
                headers=self._headers(access_token),
            )
        except httpx.RequestError as exc:
            raise QueryError(f"Failed to contact data service: {exc}", table=table) from exc

        if response.status_code >= 400:
            message = _response_message(response, f"List query on {table} failed with status {response.status_code}")
            raise QueryError(message, table=table)

        try:
            data = response.json()
        except ValueError as exc:
            raise QueryError("Data service returned an invalid response", table=table) from exc
        if not isinstance(data, list):
            raise QueryError("Data service returned an unexpected response payload", table=table)
        return [row for row in data if isinstance(row, dict)]

    async def update(
        self,
        table: str,
        record_id: str,
        fields: Mapping[str, object],
        *,
        access_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        validate_table(table)
        try:
            response = await self._client.patch(
                f"{REST_PREFIX}/{table}",
                params={"id": _filter_value(record_id)},
                json=dict(fields),
                headers=self._headers(access_token, Prefer="return=representation"),
            )
        except httpx.RequestError as exc:
            raise UpdateError(
                f"Failed to contact data service: {exc}", table=table, record_id=record_id
            ) from exc

        if response.status_code >= 400:
            message = _response_message(response, f"Update on {table} failed with status {response.status_code}")
            raise UpdateError(message, table=table, record_id=record_id)

        try:
            data = response.json()
        except ValueError as exc:
            raise UpdateError("Data service returned an invalid response", table=table, record_id=record_id) from exc

        # PostgREST answers an update that matched nothing (or was filtered by
        # row-level security) with an empty list.
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            raise UpdateError(f"No {table} record with id {record_id}", table=table, record_id=record_id)
        return data[0]

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------
    async def sign_in(self, email: str, password: str) -> AuthSession:
        try:
            response = await self._client.post(
                f"{AUTH_PREFIX}/token",
                params={"grant_type": "password"},
                json={"email": email, "password": password},
            )
        except httpx.RequestError as exc:
            raise AuthError(f"Failed to contact authentication service: {exc}") from exc

        if response.status_code >= 400:
            raise AuthError(_response_message(response, "Invalid login credentials"))
        return self._session_from_response(response)

    async def sign_up(
        self,
        email: str,
        password: str,
        *,
        full_name: str,
        role: Role,
    ) -> AuthSession:
        try:
            response = await self._client.post(
                f"{AUTH_PREFIX}/signup",
                json={
                    "email": email,
                    "password": password,
                    "data": {"full_name": full_name, "role": role.value},
                },
            )
        except httpx.RequestError as exc:
            raise AuthError(f"Failed to contact authentication service: {exc}") from exc

        if response.status_code >= 400:
            raise AuthError(_response_message(response, "Unable to create account"))

        session = self._session_from_response(response)
        await self._insert_profile(session, full_name=full_name)
        return session

    async def sign_out(self, access_token: str) -> None:
        try:
            response = await self._client.post(
                f"{AUTH_PREFIX}/logout",
                headers=self._headers(access_token),
            )
        except httpx.RequestError as exc:
            raise AuthError(f"Failed to contact authentication service: {exc}") from exc

        # An already expired or revoked token counts as signed out.
        if response.status_code in (401, 403, 404):
            return
        if response.status_code >= 400:
            raise AuthError(_response_message(response, "Unable to sign out"))

    async def get_identity(self, access_token: str) -> Identity:
        try:
            response = await self._client.get(
                f"{AUTH_PREFIX}/user",
                headers=self._headers(access_token),
            )
        except httpx.RequestError as exc:
            raise AuthError(f"Failed to contact authentication service: {exc}") from exc

        if response.status_code >= 400:
            raise AuthError("Session expired. Please sign in again.")
        try:
            payload = response.json()
        except ValueError as exc:
            raise AuthError("Authentication service returned an invalid response") from exc
        if not isinstance(payload, dict):
            raise AuthError("Authentication service returned an unexpected response payload")
        return _identity_from_payload(payload)

    async def close(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _session_from_response(self, response: httpx.Response) -> AuthSession:
        try:
            payload = response.json()
        except ValueError as exc:
            raise AuthError("Authentication service returned an invalid response") from exc
        if not isinstance(payload, dict):
            raise AuthError("Authentication service returned an unexpected response payload")

        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            # Projects with email confirmation enabled return only the user.
            raise AuthError("Check your email to confirm your account, then sign in.")
        user = payload.get("user")
        if not isinstance(user, dict):
            raise AuthError("Authentication response did not include a user")
        return AuthSession(access_token=access_token, identity=_identity_from_payload(user))

    async def _insert_profile(self, session: AuthSession, *, full_name: str) -> None:
        identity = session.identity
        try:
            response = await self._client.post(
                f"{REST_PREFIX}/{USERS}",
                json={
                    "id": identity.id,
                    "email": identity.email,
                    "full_name": full_name,
                    "role": identity.role.value,
                    "is_active": True,
                },
                headers=self._headers(session.access_token, Prefer="return=minimal"),
            )
        except httpx.RequestError:
            logger.exception("Failed to create profile row for %s", identity.id)
            return
        if response.status_code >= 400:
            logger.error(
                "Profile insert for %s failed with status %s: %s",
                identity.id,
                response.status_code,
                _response_message(response, "no detail"),
            )


__all__ = ["SupabaseBackend"]
