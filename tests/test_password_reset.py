"""Tests for the password reset flow and its per-user rate limit."""

import asyncio

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select, update

from conftest import API, PASSWORD
from devcore.api.v1.endpoints import password_reset
from devcore.main import app
from devcore.models.notification import Notification
from devcore.models.password_reset import PasswordReset
from devcore.services.rate_limit import SlidingWindowLimiter, get_reset_limiter

NEW_PASSWORD = "a-much-better-password"


@pytest.fixture
def known_tokens(monkeypatch):
    """Make ``generate_reset_token`` hand out predictable values."""
    issued = []

    def _next() -> str:
        token = f"reset-token-{len(issued) + 1}"
        issued.append(token)
        return token

    monkeypatch.setattr(password_reset, "generate_reset_token", _next)
    return issued


@pytest.mark.asyncio
async def test_unknown_email_gets_generic_response(async_client: AsyncClient, developer):
    unknown = await async_client.post(
        f"{API}/auth/forgot-password", json={"email": "ghost@example.com"}
    )
    known = await async_client.post(f"{API}/auth/forgot-password", json={"email": developer.email})
    assert unknown.status_code == known.status_code == 200
    assert unknown.json()["message"] == known.json()["message"]


@pytest.mark.asyncio
async def test_reset_token_is_single_use(
    async_client: AsyncClient, developer, known_tokens, db_session
):
    await async_client.post(f"{API}/auth/forgot-password", json={"email": developer.email})
    token = known_tokens[-1]

    stored = await db_session.scalar(select(PasswordReset).where(PasswordReset.user_id == developer.id))
    assert stored.token_hash != token

    check = await async_client.get(f"{API}/auth/verify-reset-token/{token}")
    assert check.status_code == 200
    assert check.json()["data"]["email"] == developer.email

    body = {"password": NEW_PASSWORD, "confirmPassword": NEW_PASSWORD}
    resp = await async_client.post(f"{API}/auth/reset-password/{token}", json=body)
    assert resp.status_code == 200

    again = await async_client.post(f"{API}/auth/reset-password/{token}", json=body)
    assert again.status_code == 400
    assert again.json()["error"] == "Invalid or expired reset token"

    old = await async_client.post(
        f"{API}/auth/login", json={"email": developer.email, "password": PASSWORD}
    )
    assert old.status_code == 401
    new = await async_client.post(
        f"{API}/auth/login", json={"email": developer.email, "password": NEW_PASSWORD}
    )
    assert new.status_code == 200

    notices = await db_session.scalar(
        select(func.count()).select_from(Notification).where(Notification.user_id == developer.id)
    )
    assert notices == 2


@pytest.mark.asyncio
async def test_new_request_invalidates_previous_token(
    async_client: AsyncClient, developer, known_tokens
):
    await async_client.post(f"{API}/auth/forgot-password", json={"email": developer.email})
    await async_client.post(f"{API}/auth/forgot-password", json={"email": developer.email})
    first, second = known_tokens

    stale = await async_client.get(f"{API}/auth/verify-reset-token/{first}")
    assert stale.status_code == 400
    current = await async_client.get(f"{API}/auth/verify-reset-token/{second}")
    assert current.status_code == 200


@pytest.mark.asyncio
async def test_mismatched_confirmation_rejected(async_client: AsyncClient, developer, known_tokens):
    await async_client.post(f"{API}/auth/forgot-password", json={"email": developer.email})
    resp = await async_client.post(
        f"{API}/auth/reset-password/{known_tokens[-1]}",
        json={"password": NEW_PASSWORD, "confirmPassword": "something-else"},
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_reset_requests_are_rate_limited(async_client: AsyncClient, developer):
    limiter = SlidingWindowLimiter(3, 1)
    app.dependency_overrides[get_reset_limiter] = lambda: limiter

    for _ in range(3):
        resp = await async_client.post(f"{API}/auth/forgot-password", json={"email": developer.email})
        assert resp.status_code == 200

    blocked = await async_client.post(f"{API}/auth/forgot-password", json={"email": developer.email})
    assert blocked.status_code == 429

    await asyncio.sleep(1.1)
    resp = await async_client.post(f"{API}/auth/forgot-password", json={"email": developer.email})
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_token_claimed_by_concurrent_reset_is_rejected(
    async_client: AsyncClient, developer, known_tokens, monkeypatch
):
    await async_client.post(f"{API}/auth/forgot-password", json={"email": developer.email})
    token = known_tokens[-1]
    original = password_reset._valid_reset

    async def _claimed_meanwhile(db, raw_token):
        record, user = await original(db, raw_token)
        # Another request burns the token between the read and the write.
        await db.execute(
            update(PasswordReset).where(PasswordReset.id == record.id).values(used=True)
        )
        return record, user

    monkeypatch.setattr(password_reset, "_valid_reset", _claimed_meanwhile)
    body = {"password": NEW_PASSWORD, "confirmPassword": NEW_PASSWORD}
    resp = await async_client.post(f"{API}/auth/reset-password/{token}", json=body)
    assert resp.status_code == 400
    assert resp.json()["error"] == password_reset.INVALID_TOKEN

    login = await async_client.post(
        f"{API}/auth/login", json={"email": developer.email, "password": PASSWORD}
    )
    assert login.status_code == 200
