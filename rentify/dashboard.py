"""Admin dashboard: aggregate statistics and the two status workflows."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

from .backend import APARTMENTS, APPLICATIONS, COMPLAINTS, USERS, DataService, Join, ListQuery
from .errors import UpdateError
from .models import (
    COMPLAINT_TARGET_STATUSES,
    Apartment,
    Complaint,
    ComplaintStatus,
    DashboardStats,
    Role,
    Snapshot,
    User,
    parse_complaint_status,
)
from .notifications import ERROR, SUCCESS, Notifier
from .sessions import SessionContext

logger = logging.getLogger("rentify.dashboard")

LIST_LIMIT = 10

LOAD_FAILED_MESSAGE = "Failed to load dashboard data"

_T = TypeVar("_T")


@dataclass
class DashboardState:
    """What the dashboard currently shows."""

    loading: bool = False
    snapshot: Optional[Snapshot] = None


def complaint_actions(status: ComplaintStatus) -> Tuple[ComplaintStatus, ...]:
    """Transitions offered by the UI for a complaint in ``status``.

    Only ``resolved`` hides the controls; ``dismissed`` complaints can still be
    moved.
    """

    if status is ComplaintStatus.RESOLVED:
        return ()
    return COMPLAINT_TARGET_STATUSES


def can_transition(complaint: Complaint) -> bool:
    return bool(complaint_actions(complaint.status))


def can_toggle_user(user: User) -> bool:
    return not user.is_admin


def _parse_rows(rows: Optional[Iterable[Dict[str, Any]]], factory: Callable[[Dict[str, Any]], _T], name: str) -> Tuple[_T, ...]:
    parsed: List[_T] = []
    for row in rows or ():
        try:
            parsed.append(factory(row))
        except ValueError:
            logger.warning("Dropping malformed %s record: %r", name, row)
    return tuple(parsed)


class DashboardAggregator:
    """Load dashboard snapshots and apply admin mutations.

    A successful mutation never patches local state: it is followed by a full
    :meth:`load_snapshot`, either here or by the page the caller redirects to.
    """

    def __init__(
        self,
        backend: DataService,
        context: SessionContext,
        notifier: Notifier,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._backend = backend
        self._context = context
        self._notifier = notifier
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        if context.dashboard is None:
            context.dashboard = DashboardState()
        self._state = context.dashboard

    @property
    def state(self) -> DashboardState:
        return self._state

    async def load_snapshot(self) -> Snapshot:
        """Fetch all counts and lists concurrently and publish a new snapshot."""

        self._state.loading = True
        self._state.snapshot = None
        token = self._context.access_token

        queries = {
            "total_users": self._backend.count(USERS, access_token=token),
            "total_landlords": self._backend.count(USERS, {"role": Role.LANDLORD.value}, access_token=token),
            "total_tenants": self._backend.count(USERS, {"role": Role.TENANT.value}, access_token=token),
            "total_apartments": self._backend.count(APARTMENTS, access_token=token),
            "total_applications": self._backend.count(APPLICATIONS, access_token=token),
            "total_complaints": self._backend.count(COMPLAINTS, access_token=token),
            "apartments": self._backend.list(
                APARTMENTS,
                ListQuery(join=Join(alias="landlord", foreign_key="landlord_id"), limit=LIST_LIMIT),
                access_token=token,
            ),
            "complaints": self._backend.list(
                COMPLAINTS,
                ListQuery(join=Join(alias="complainant", foreign_key="complainant_id"), limit=LIST_LIMIT),
                access_token=token,
            ),
            "users": self._backend.list(USERS, ListQuery(), access_token=token),
        }

        results = await asyncio.gather(*queries.values(), return_exceptions=True)

        values: Dict[str, Any] = {}
        failures = 0
        for name, result in zip(queries, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                failures += 1
                logger.error("Dashboard query %s failed: %s", name, result, exc_info=result)
                values[name] = None
            else:
                values[name] = result

        if failures:
            self._notifier.notify(LOAD_FAILED_MESSAGE, category=ERROR)

        stats = DashboardStats(
            **{
                name: int(values[name] or 0)
                for name in (
                    "total_users",
                    "total_landlords",
                    "total_tenants",
                    "total_apartments",
                    "total_applications",
                    "total_complaints",
                )
            }
        )
        snapshot = Snapshot(
            stats=stats,
            users=_parse_rows(values["users"], User.from_record, "user"),
            apartments=_parse_rows(values["apartments"], Apartment.from_record, "apartment"),
            complaints=_parse_rows(values["complaints"], Complaint.from_record, "complaint"),
            loaded_at=self._clock(),
        )

        self._state.snapshot = snapshot
        self._state.loading = False
        return snapshot

    async def set_user_active(self, user_id: str, active: bool, *, reload: bool = True) -> Optional[Snapshot]:
        """Flip ``users.is_active``; with ``reload`` the snapshot is fetched again.

        Callers that redirect to a page which loads the dashboard itself pass
        ``reload=False`` and get ``None`` back.
        """

        if not active and self._is_known_admin(user_id):
            self._notifier.notify("Admin accounts cannot be deactivated", category=ERROR)
            raise UpdateError("Admin accounts cannot be deactivated", table=USERS, record_id=user_id)

        try:
            await self._backend.update(
                USERS,
                user_id,
                {"is_active": bool(active)},
                access_token=self._context.access_token,
            )
        except UpdateError as exc:
            logger.error("Error updating user status for %s: %s", user_id, exc)
            self._notifier.notify("Failed to update user status", category=ERROR)
            raise

        self._notifier.notify(
            f"User {'activated' if active else 'deactivated'} successfully",
            category=SUCCESS,
        )
        return await self.load_snapshot() if reload else None

    async def set_complaint_status(
        self,
        complaint_id: str,
        new_status: ComplaintStatus | str,
        *,
        reload: bool = True,
    ) -> Optional[Snapshot]:
        """Move a complaint to ``new_status``; ``resolved_at`` tracks the resolved state."""

        try:
            status = parse_complaint_status(new_status.value if isinstance(new_status, ComplaintStatus) else new_status)
        except ValueError:
            status = None
        if status not in COMPLAINT_TARGET_STATUSES:
            self._notifier.notify("Failed to update complaint", category=ERROR)
            raise UpdateError(
                f"Unsupported complaint status '{new_status}'",
                table=COMPLAINTS,
                record_id=complaint_id,
            )

        resolved_at = self._clock().isoformat() if status is ComplaintStatus.RESOLVED else None
        try:
            await self._backend.update(
                COMPLAINTS,
                complaint_id,
                {"status": status.value, "resolved_at": resolved_at},
                access_token=self._context.access_token,
            )
        except UpdateError as exc:
            logger.error("Error updating complaint %s: %s", complaint_id, exc)
            self._notifier.notify("Failed to update complaint", category=ERROR)
            raise

        self._notifier.notify("Complaint status updated", category=SUCCESS)
        return await self.load_snapshot() if reload else None

    def _is_known_admin(self, user_id: str) -> bool:
        snapshot = self._state.snapshot
        if snapshot is None:
            return False
        return any(user.id == user_id and user.is_admin for user in snapshot.users)


__all__ = [
    "DashboardAggregator",
    "DashboardState",
    "LIST_LIMIT",
    "LOAD_FAILED_MESSAGE",
    "can_toggle_user",
    "can_transition",
    "complaint_actions",
]
