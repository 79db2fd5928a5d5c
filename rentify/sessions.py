"""Per-browser session state for the web interface."""

from __future__ import annotations

import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from .models import Identity, Role

if TYPE_CHECKING:  # pragma: no cover
    from .dashboard import DashboardState

logger = logging.getLogger("rentify.sessions")

SessionListener = Callable[["SessionContext"], None]


class SessionContext:
    """Current identity and access token for one signed-in browser.

    Passed explicitly to the identity provider and the dashboard instead of
    living in module-level state.  Listeners registered with :meth:`subscribe`
    run after every auth state change.
    """

    def __init__(self) -> None:
        self._identity: Optional[Identity] = None
        self._access_token: Optional[str] = None
        self._listeners: List[SessionListener] = []
        self.dashboard: Optional["DashboardState"] = None

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    @property
    def role(self) -> Optional[Role]:
        return self._identity.role if self._identity else None

    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None and bool(self._access_token)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def update(self, identity: Identity, access_token: str) -> None:
        self._identity = identity
        self._access_token = access_token
        self._emit()

    def clear(self) -> None:
        self._identity = None
        self._access_token = None
        self.dashboard = None
        self._emit()

    def _emit(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:  # pragma: no cover
                logger.exception("Session listener failed")


@dataclass
class _SessionRecord:
    context: SessionContext
    expires_at: datetime


class SessionManager:
    """Generate, validate, and revoke web sessions."""

    def __init__(self, *, ttl: timedelta = timedelta(hours=8)) -> None:
        self._ttl = ttl
        self._sessions: Dict[str, _SessionRecord] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def create(self, context: SessionContext) -> str:
        token = secrets.token_urlsafe(32)
        now = self._now()
        record = _SessionRecord(context=context, expires_at=now + self._ttl)
        with self._lock:
            self._prune_expired(now)
            self._sessions[token] = record
        return token

    def resolve(self, token: str) -> Optional[SessionContext]:
        now = self._now()
        with self._lock:
            record = self._sessions.get(token)
            if record is None:
                return None
            if record.expires_at <= now:
                self._sessions.pop(token, None)
                return None
            record.expires_at = now + self._ttl
            return record.context

    def destroy(self, token: str) -> Optional[SessionContext]:
        with self._lock:
            record = self._sessions.pop(token, None)
        return record.context if record else None

    def active_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _prune_expired(self, now: datetime) -> None:
        expired = [token for token, record in self._sessions.items() if record.expires_at <= now]
        for token in expired:
            del self._sessions[token]

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)


__all__ = ["SessionContext", "SessionListener", "SessionManager"]
