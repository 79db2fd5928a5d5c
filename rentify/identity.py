"""Sign-in, sign-up and sign-out against the data service's auth provider."""

from __future__ import annotations

import logging
import re
from typing import Optional

from .backend import USERS, DataService, ListQuery
from .errors import AuthError, QueryError
from .models import AuthSession, Identity, Role, User, parse_role
from .sessions import SessionContext

logger = logging.getLogger("rentify.identity")

PASSWORD_MIN_LENGTH = 6

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_signup(email: str, password: str, full_name: str, role: object) -> Role:
    """Check sign-up input before it reaches the auth provider."""

    if not email.strip() or not password or not full_name.strip():
        raise AuthError("Please fill in all fields")
    if not _EMAIL_PATTERN.fullmatch(email.strip()):
        raise AuthError("Please enter a valid email address")
    if len(password) < PASSWORD_MIN_LENGTH:
        raise AuthError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    try:
        return parse_role(role)
    except ValueError as exc:
        raise AuthError("Please choose a valid account type") from exc


class IdentityProvider:
    """Drive auth calls and keep ``context`` in step with the result."""

    def __init__(self, backend: DataService, context: SessionContext) -> None:
        self._backend = backend
        self._context = context

    @property
    def context(self) -> SessionContext:
        return self._context

    @property
    def current(self) -> Optional[Identity]:
        return self._context.identity

    async def sign_in(self, email: str, password: str) -> Identity:
        cleaned_email = email.strip().lower()
        if not cleaned_email or not password:
            raise AuthError("Please fill in all fields")

        try:
            session = await self._backend.sign_in(cleaned_email, password)
        except AuthError:
            logger.warning("Failed sign-in attempt for %s", cleaned_email)
            raise

        identity = await self._resolve_profile(session)
        self._context.update(identity, session.access_token)
        logger.info("User %s signed in as %s", identity.id, identity.role.value)
        return identity

    async def sign_up(self, email: str, password: str, full_name: str, role: object) -> Identity:
        parsed_role = validate_signup(email, password, full_name, role)
        session = await self._backend.sign_up(
            email.strip().lower(),
            password,
            full_name=full_name.strip(),
            role=parsed_role,
        )
        identity = session.identity
        if not identity.full_name:
            identity = Identity(id=identity.id, email=identity.email, role=identity.role, full_name=full_name.strip())
        self._context.update(identity, session.access_token)
        logger.info("Created %s account %s", parsed_role.value, identity.id)
        return identity

    async def sign_out(self) -> None:
        token = self._context.access_token
        if token:
            try:
                await self._backend.sign_out(token)
            except AuthError:
                logger.warning("Remote sign-out failed; clearing local session anyway", exc_info=True)
        if self._context.identity is not None or token:
            self._context.clear()

    async def refresh(self) -> Optional[Identity]:
        """Reload the identity for the stored token, clearing the context on failure."""

        token = self._context.access_token
        if not token:
            return None
        try:
            identity = await self._backend.get_identity(token)
            identity = await self._resolve_profile(AuthSession(access_token=token, identity=identity))
        except AuthError:
            logger.info("Stored session is no longer valid; clearing it")
            self._context.clear()
            return None
        self._context.update(identity, token)
        return identity

    async def _resolve_profile(self, session: AuthSession) -> Identity:
        """Prefer the role and name from the ``users`` profile row over the token claims."""

        identity = session.identity
        try:
            rows = await self._backend.list(
                USERS,
                ListQuery(filters={"id": identity.id}, order_by=None, limit=1),
                access_token=session.access_token,
            )
        except QueryError:
            logger.warning("Could not load profile for %s; using token claims", identity.id, exc_info=True)
            return identity
        if not rows:
            return identity

        profile = User.from_record(rows[0])
        if not profile.is_active:
            try:
                await self._backend.sign_out(session.access_token)
            except AuthError:
                logger.warning("Failed to revoke session for deactivated user %s", identity.id)
            raise AuthError("This account has been deactivated. Contact an administrator.")

        return Identity(
            id=identity.id,
            email=profile.email or identity.email,
            role=profile.role,
            full_name=profile.full_name or identity.full_name,
        )


__all__ = ["IdentityProvider", "PASSWORD_MIN_LENGTH", "validate_signup"]
