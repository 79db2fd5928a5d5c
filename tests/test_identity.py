from __future__ import annotations

import asyncio

import pytest

from rentify.backend import USERS
from rentify.database import Database
from rentify.errors import AuthError
from rentify.identity import IdentityProvider, validate_signup
from rentify.models import Role
from rentify.sessions import SessionContext


@pytest.mark.parametrize("role", [Role.TENANT, Role.LANDLORD, Role.ADMIN])
def test_sign_up_then_sign_in_preserves_role(database: Database, role: Role) -> None:
    async def scenario() -> None:
        signup_context = SessionContext()
        created = await IdentityProvider(database, signup_context).sign_up(
            f"{role.value}@example.com", "secret1", f"{role.value.title()} User", role.value
        )
        assert created.role is role
        assert signup_context.is_authenticated

        context = SessionContext()
        identity = await IdentityProvider(database, context).sign_in(f"{role.value}@example.com", "secret1")
        assert identity.role is role
        assert context.role is role

    asyncio.run(scenario())


def test_validate_signup_messages() -> None:
    with pytest.raises(AuthError, match="fill in all fields"):
        validate_signup("", "secret1", "Name", "tenant")
    with pytest.raises(AuthError, match="valid email"):
        validate_signup("nope", "secret1", "Name", "tenant")
    with pytest.raises(AuthError, match="at least 6 characters"):
        validate_signup("a@example.com", "12345", "Name", "tenant")
    with pytest.raises(AuthError, match="account type"):
        validate_signup("a@example.com", "123456", "Name", "owner")

    assert validate_signup("a@example.com", "123456", "Name", "LANDLORD") is Role.LANDLORD


def test_duplicate_sign_up_is_rejected(database: Database) -> None:
    database.create_user("Ana", "ana@example.com", "secret1", Role.TENANT)

    async def scenario() -> None:
        with pytest.raises(AuthError, match="already registered"):
            await IdentityProvider(database, SessionContext()).sign_up("ana@example.com", "secret1", "Ana", "tenant")

    asyncio.run(scenario())


def test_failed_sign_in_leaves_context_empty(database: Database) -> None:
    database.create_user("Ana", "ana@example.com", "secret1", Role.TENANT)
    context = SessionContext()

    async def scenario() -> None:
        with pytest.raises(AuthError, match="Invalid login credentials"):
            await IdentityProvider(database, context).sign_in("ana@example.com", "wrong-pass")

    asyncio.run(scenario())
    assert not context.is_authenticated


def test_sign_out_is_idempotent(database: Database, admin) -> None:
    context = SessionContext()
    provider = IdentityProvider(database, context)
    events = []
    context.subscribe(lambda ctx: events.append(ctx.identity))

    async def scenario() -> None:
        await provider.sign_in(admin.email, "admin-password")
        await provider.sign_out()
        await provider.sign_out()

    asyncio.run(scenario())

    assert context.identity is None
    assert events[-1] is None
    assert len(events) == 2


def test_deactivated_user_cannot_sign_in(database: Database) -> None:
    user = database.create_user("Liza", "liza@example.com", "secret1", Role.TENANT)
    database.update_row(USERS, user.id, {"is_active": False})
    context = SessionContext()

    async def scenario() -> None:
        with pytest.raises(AuthError, match="deactivated"):
            await IdentityProvider(database, context).sign_in("liza@example.com", "secret1")

    asyncio.run(scenario())
    assert not context.is_authenticated


def test_refresh_clears_context_when_token_revoked(database: Database, admin) -> None:
    context = SessionContext()
    provider = IdentityProvider(database, context)

    async def scenario() -> None:
        await provider.sign_in(admin.email, "admin-password")
        assert (await provider.refresh()) is not None
        await database.sign_out(context.access_token)
        assert (await provider.refresh()) is None

    asyncio.run(scenario())
    assert context.identity is None
