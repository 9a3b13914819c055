"""Tests for signup, login, invite redemption and re-authentication."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from conftest import API, PASSWORD, auth_headers
from devcore.api.v1.endpoints import auth
from devcore.core.permissions import Role
from devcore.models.activity_log import ActivityLog
from devcore.models.invite_code import InviteCode


async def _invite(async_client: AsyncClient, creator, role: str = "DEVELOPER") -> str:
    resp = await async_client.post(
        f"{API}/invite-codes", json={"role": role}, headers=auth_headers(creator)
    )
    assert resp.status_code == 201
    return resp.json()["data"]["code"]


def _signup(role: str, email: str, invite_code: str | None = None) -> dict:
    body = {"name": "Dana Reyes", "email": email, "password": PASSWORD, "role": role}
    if invite_code is not None:
        body["inviteCode"] = invite_code
    return body


@pytest.mark.asyncio
async def test_client_signup_is_auto_approved_and_gets_token(async_client: AsyncClient):
    resp = await async_client.post(f"{API}/auth/signup", json=_signup("CLIENT", "Dana@Example.com"))
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["token"]
    assert data["user"]["email"] == "dana@example.com"
    assert data["user"]["isApproved"] is True
    assert data["user"]["firstName"] == "Dana"
    assert data["user"]["lastName"] == "Reyes"


@pytest.mark.asyncio
async def test_duplicate_email_conflicts(async_client: AsyncClient, client_user):
    resp = await async_client.post(f"{API}/auth/signup", json=_signup("CLIENT", client_user.email))
    assert resp.status_code == 409
    assert resp.json()["success"] is False


@pytest.mark.asyncio
async def test_short_password_is_validation_error(async_client: AsyncClient):
    body = _signup("CLIENT", "short@example.com")
    body["password"] = "abc"
    resp = await async_client.post(f"{API}/auth/signup", json=body)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Validation failed"


@pytest.mark.asyncio
async def test_developer_signup_requires_invite_code(async_client: AsyncClient):
    resp = await async_client.post(f"{API}/auth/signup", json=_signup("DEVELOPER", "dev@example.com"))
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invite code is required for this role"


@pytest.mark.asyncio
async def test_invite_role_must_match(async_client: AsyncClient, super_admin):
    code = await _invite(async_client, super_admin, "ADMIN")
    resp = await async_client.post(
        f"{API}/auth/signup", json=_signup("DEVELOPER", "dev@example.com", code)
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid or expired invite code"


@pytest.mark.asyncio
async def test_invited_developer_waits_for_approval(
    async_client: AsyncClient, super_admin, db_session
):
    code = await _invite(async_client, super_admin)
    resp = await async_client.post(
        f"{API}/auth/signup", json=_signup("DEVELOPER", "dev@example.com", code.lower())
    )
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["token"] is None
    assert data["user"]["isApproved"] is None

    invite = await db_session.scalar(select(InviteCode).where(InviteCode.code == code))
    assert invite.used is True
    assert invite.used_by == "dev@example.com"

    created = await db_session.scalar(
        select(ActivityLog).where(ActivityLog.type == "USER_CREATED")
    )
    assert created is not None
    assert created.target_id == data["user"]["id"]

    login = await async_client.post(
        f"{API}/auth/login", json={"email": "dev@example.com", "password": PASSWORD}
    )
    assert login.status_code == 403
    assert login.json()["needsApproval"] is True


@pytest.mark.asyncio
async def test_invite_code_is_single_use(async_client: AsyncClient, super_admin):
    code = await _invite(async_client, super_admin)
    first = await async_client.post(
        f"{API}/auth/signup", json=_signup("DEVELOPER", "first@example.com", code)
    )
    assert first.status_code == 201
    second = await async_client.post(
        f"{API}/auth/signup", json=_signup("DEVELOPER", "second@example.com", code)
    )
    assert second.status_code == 409

    check = await async_client.post(f"{API}/auth/verify-invite", json={"code": code})
    assert check.status_code == 409


@pytest.mark.asyncio
async def test_verify_invite(async_client: AsyncClient, admin):
    code = await _invite(async_client, admin)
    resp = await async_client.post(f"{API}/auth/verify-invite", json={"code": code})
    assert resp.status_code == 200
    assert resp.json()["data"]["role"] == "DEVELOPER"

    missing = await async_client.post(f"{API}/auth/verify-invite", json={"code": "NOPE1234"})
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_login_success_and_me(async_client: AsyncClient, developer):
    resp = await async_client.post(
        f"{API}/auth/login", json={"email": developer.email, "password": PASSWORD}
    )
    assert resp.status_code == 200
    token = resp.json()["data"]["token"]
    me = await async_client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["data"]["id"] == developer.id
    assert me.json()["data"]["lastLogin"] is not None


@pytest.mark.asyncio
async def test_login_wrong_password(async_client: AsyncClient, developer):
    resp = await async_client.post(
        f"{API}/auth/login", json={"email": developer.email, "password": "wrong-password"}
    )
    assert resp.status_code == 401
    assert resp.json()["error"] == "Invalid credentials"


@pytest.mark.asyncio
async def test_login_rejected_and_deactivated(async_client: AsyncClient, make_user):
    rejected = await make_user(Role.DEVELOPER, is_approved=False)
    resp = await async_client.post(
        f"{API}/auth/login", json={"email": rejected.email, "password": PASSWORD}
    )
    assert resp.status_code == 403
    assert resp.json()["rejected"] is True

    inactive = await make_user(Role.CLIENT, is_active=False)
    resp = await async_client.post(
        f"{API}/auth/login", json={"email": inactive.email, "password": PASSWORD}
    )
    assert resp.status_code == 403
    assert resp.json()["error"] == "Your account has been deactivated"


@pytest.mark.asyncio
async def test_protected_route_without_token(async_client: AsyncClient):
    resp = await async_client.get(f"{API}/auth/me")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_reauthenticate_issues_fresh_token(async_client: AsyncClient, developer):
    bad = await async_client.post(
        f"{API}/auth/reauthenticate", json={"password": "nope-nope"}, headers=auth_headers(developer)
    )
    assert bad.status_code == 401

    resp = await async_client.post(
        f"{API}/auth/reauthenticate", json={"password": PASSWORD}, headers=auth_headers(developer)
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["token"]
    assert data["expiresIn"] > 0


@pytest.mark.asyncio
async def test_profile_update_ignores_privileged_fields(async_client: AsyncClient, developer):
    resp = await async_client.patch(
        f"{API}/users/me",
        json={"bio": "Rust and Python", "role": "SUPER_ADMIN", "canDeleteUsers": True},
        headers=auth_headers(developer),
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["bio"] == "Rust and Python"
    assert data["role"] == "DEVELOPER"
    assert data["canDeleteUsers"] is False


@pytest.mark.asyncio
async def test_change_password(async_client: AsyncClient, developer):
    headers = auth_headers(developer)
    wrong = await async_client.patch(
        f"{API}/users/me/password",
        json={"currentPassword": "not-my-password", "newPassword": "another-password"},
        headers=headers,
    )
    assert wrong.status_code == 400

    same = await async_client.patch(
        f"{API}/users/me/password",
        json={"currentPassword": PASSWORD, "newPassword": PASSWORD},
        headers=headers,
    )
    assert same.status_code == 400

    resp = await async_client.patch(
        f"{API}/users/me/password",
        json={"currentPassword": PASSWORD, "newPassword": "another-password"},
        headers=headers,
    )
    assert resp.status_code == 200
    login = await async_client.post(
        f"{API}/auth/login", json={"email": developer.email, "password": "another-password"}
    )
    assert login.status_code == 200


@pytest.fixture
def login_limiter(monkeypatch):
    """Switch the per-IP login limiter on with a clean window."""
    monkeypatch.setattr(auth.limiter, "enabled", True)
    auth.limiter.reset()
    yield auth.limiter
    auth.limiter.reset()


@pytest.mark.asyncio
async def test_login_is_rate_limited(async_client: AsyncClient, developer, login_limiter):
    body = {"email": developer.email, "password": "wrong-password"}
    for _ in range(5):
        resp = await async_client.post(f"{API}/auth/login", json=body)
        assert resp.status_code == 401

    blocked = await async_client.post(
        f"{API}/auth/login", json={"email": developer.email, "password": PASSWORD}
    )
    assert blocked.status_code == 429
    assert blocked.json()["success"] is False
