from datetime import timedelta
import asyncio

import pytest

import filebox.services.auth as auth_module
from filebox.schemas.user import UserCreate
from filebox.services.auth import AuthService
from filebox.utils.exceptions import AuthenticationError, ConflictError, ValidationError
from filebox.utils.time import utcnow


async def register(session_factory, email="alice@example.com", password="abc12345", username="alice"):
    async with session_factory() as db:
        return await AuthService(db).register(UserCreate(email=email, password=password, username=username))


async def test_register_returns_session(session_factory):
    token = await register(session_factory)

    assert token.access_token and token.refresh_token
    assert token.username == "alice"
    assert token.email == "alice@example.com"
    assert not token.is_admin
    assert token.expires_at < token.refresh_expires_at

    async with session_factory() as db:
        assert await AuthService(db).validate(token.access_token) == token.user_id


async def test_register_rejects_weak_password(session_factory):
    with pytest.raises(ValidationError):
        await register(session_factory, password="abcdefgh")


async def test_register_accepts_any_address_the_schema_accepts(session_factory):
    token = await register(session_factory, email="josé@example.com", username="jose")
    assert token.email == "josé@example.com"


async def test_register_duplicate_email(session_factory):
    await register(session_factory)
    with pytest.raises(ConflictError):
        await register(session_factory, username="alice2")


async def test_register_duplicate_username(session_factory):
    await register(session_factory)
    with pytest.raises(ConflictError):
        await register(session_factory, email="alice2@example.com")


async def test_login_errors_do_not_reveal_cause(session_factory):
    await register(session_factory)

    async with session_factory() as db:
        with pytest.raises(AuthenticationError) as wrong_password:
            await AuthService(db).login("alice@example.com", "wrong1234")
        with pytest.raises(AuthenticationError) as unknown_email:
            await AuthService(db).login("nobody@example.com", "abc12345")

    assert wrong_password.value.message == unknown_email.value.message


async def test_login_is_case_insensitive_on_email(session_factory):
    await register(session_factory)
    async with session_factory() as db:
        token = await AuthService(db).login("Alice@Example.com", "abc12345")
    assert token.email == "alice@example.com"


@pytest.mark.parametrize("access_token", ["", "garbage", "a.b.c"])
async def test_validate_rejects_malformed_tokens(session_factory, access_token):
    async with session_factory() as db:
        with pytest.raises(AuthenticationError):
            await AuthService(db).validate(access_token)


async def test_validate_rejects_expired_session(session_factory, monkeypatch):
    token = await register(session_factory)
    later = utcnow() + timedelta(minutes=31)
    monkeypatch.setattr(auth_module, "utcnow", lambda: later)

    async with session_factory() as db:
        with pytest.raises(AuthenticationError):
            await AuthService(db).validate(token.access_token)


async def test_logout_revokes_and_is_idempotent(session_factory):
    token = await register(session_factory)

    async with session_factory() as db:
        await AuthService(db).logout(token.access_token)
    async with session_factory() as db:
        await AuthService(db).logout(token.access_token)

    async with session_factory() as db:
        with pytest.raises(AuthenticationError):
            await AuthService(db).validate(token.access_token)


async def test_logout_rejects_forged_token(session_factory):
    async with session_factory() as db:
        with pytest.raises(AuthenticationError):
            await AuthService(db).logout("not-a-token")


async def test_refresh_rotates_session(session_factory):
    token = await register(session_factory)

    async with session_factory() as db:
        rotated = await AuthService(db).refresh(token.refresh_token)

    assert rotated.refresh_token != token.refresh_token
    assert rotated.access_token != token.access_token
    async with session_factory() as db:
        service = AuthService(db)
        assert await service.validate(rotated.access_token) == token.user_id
        # the consumed session is gone for good
        with pytest.raises(AuthenticationError):
            await service.validate(token.access_token)
        with pytest.raises(AuthenticationError):
            await service.refresh(token.refresh_token)


async def test_refresh_unknown_token(session_factory):
    async with session_factory() as db:
        with pytest.raises(AuthenticationError):
            await AuthService(db).refresh("unknown-refresh-token")


async def test_refresh_expired_token(session_factory, monkeypatch):
    token = await register(session_factory)
    later = utcnow() + timedelta(days=8)
    monkeypatch.setattr(auth_module, "utcnow", lambda: later)

    async with session_factory() as db:
        with pytest.raises(AuthenticationError):
            await AuthService(db).refresh(token.refresh_token)


async def test_concurrent_refresh_has_one_winner(session_factory):
    token = await register(session_factory)

    async def attempt():
        async with session_factory() as db:
            try:
                await AuthService(db).refresh(token.refresh_token)
                return True
            except AuthenticationError:
                return False

    results = await asyncio.gather(*(attempt() for _ in range(4)))
    assert results.count(True) == 1


async def test_refresh_after_logout_fails(session_factory):
    token = await register(session_factory)
    async with session_factory() as db:
        await AuthService(db).logout(token.access_token)

    async with session_factory() as db:
        with pytest.raises(AuthenticationError):
            await AuthService(db).refresh(token.refresh_token)


async def test_ensure_admin_runs_once(session_factory):
    async with session_factory() as db:
        admin = await AuthService(db).ensure_admin("root@example.com", "rootpass1", "root")
    assert admin.is_admin

    async with session_factory() as db:
        assert await AuthService(db).ensure_admin("root2@example.com", "rootpass1", "root2") is None


async def test_ensure_admin_applies_password_policy(session_factory):
    async with session_factory() as db:
        with pytest.raises(ValidationError):
            await AuthService(db).ensure_admin("root@example.com", "short", "root")
