"""Tests for the notification inbox and the contact form."""

import pytest
from httpx import AsyncClient

from conftest import API, auth_headers
from devcore.models.notification import Notification


@pytest.fixture
def add_notifications(db_session):
    async def _add(user, count: int, is_read: bool = False):
        for n in range(count):
            db_session.add(
                Notification(user_id=user.id, title=f"Notice {n}", message="Hello", is_read=is_read)
            )
        await db_session.commit()

    return _add


# ── Notifications ───────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_inbox_defaults_to_unread(async_client: AsyncClient, developer, add_notifications):
    await add_notifications(developer, 2)
    await add_notifications(developer, 1, is_read=True)
    headers = auth_headers(developer)

    unread = await async_client.get(f"{API}/notifications", headers=headers)
    assert len(unread.json()["data"]) == 2

    everything = await async_client.get(f"{API}/notifications?unreadOnly=false", headers=headers)
    assert len(everything.json()["data"]) == 3


@pytest.mark.asyncio
async def test_inbox_is_capped(async_client: AsyncClient, developer, add_notifications):
    await add_notifications(developer, 55)
    resp = await async_client.get(f"{API}/notifications", headers=auth_headers(developer))
    assert len(resp.json()["data"]) == 50


@pytest.mark.asyncio
async def test_mark_read_is_owner_scoped(
    async_client: AsyncClient, developer, client_user, add_notifications
):
    await add_notifications(developer, 1)
    inbox = await async_client.get(f"{API}/notifications", headers=auth_headers(developer))
    notification_id = inbox.json()["data"][0]["id"]

    foreign = await async_client.patch(
        f"{API}/notifications/{notification_id}/read", headers=auth_headers(client_user)
    )
    assert foreign.status_code == 404

    resp = await async_client.patch(
        f"{API}/notifications/{notification_id}/read", headers=auth_headers(developer)
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["isRead"] is True


@pytest.mark.asyncio
async def test_mark_all_read(async_client: AsyncClient, developer, client_user, add_notifications):
    await add_notifications(developer, 3)
    await add_notifications(client_user, 1)

    resp = await async_client.patch(f"{API}/notifications/read-all", headers=auth_headers(developer))
    assert resp.status_code == 200
    assert resp.json()["message"] == "3 notification(s) marked as read"

    left = await async_client.get(f"{API}/notifications", headers=auth_headers(client_user))
    assert len(left.json()["data"]) == 1


# ── Contact form ────────────────────────────────────────────────────
CONTACT = {
    "name": "Morgan Lee",
    "email": "Morgan@Example.com",
    "company": "Acme",
    "subject": "Quote",
    "message": "We need a new website.",
}


@pytest.mark.asyncio
async def test_public_contact_submission(async_client: AsyncClient):
    resp = await async_client.post(f"{API}/contact", json=CONTACT)
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["status"] == "NEW"
    assert data["email"] == "morgan@example.com"


@pytest.mark.asyncio
async def test_contact_requires_valid_email(async_client: AsyncClient):
    resp = await async_client.post(f"{API}/contact", json={**CONTACT, "email": "not-an-email"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_inbox_is_admin_only(async_client: AsyncClient, developer):
    resp = await async_client.get(f"{API}/contact", headers=auth_headers(developer))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_opening_message_marks_it_read(async_client: AsyncClient, admin):
    created = (await async_client.post(f"{API}/contact", json=CONTACT)).json()["data"]
    headers = auth_headers(admin)

    opened = await async_client.get(f"{API}/contact/{created['id']}", headers=headers)
    assert opened.json()["data"]["status"] == "READ"

    listed = await async_client.get(f"{API}/contact?status=NEW", headers=headers)
    assert listed.json()["data"] == []


@pytest.mark.asyncio
async def test_reply_appends_trail(async_client: AsyncClient, admin):
    created = (await async_client.post(f"{API}/contact", json=CONTACT)).json()["data"]
    headers = auth_headers(admin)

    await async_client.patch(
        f"{API}/contact/{created['id']}", json={"notes": "Called back"}, headers=headers
    )
    resp = await async_client.post(
        f"{API}/contact/{created['id']}/reply", json={"message": "Thanks, quote attached."}, headers=headers
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "REPLIED"
    assert data["repliedAt"] is not None
    assert data["notes"].startswith("Called back\n\nReplied on ")
    assert data["notes"].endswith(f"UTC by {admin.email}")

    empty = await async_client.post(
        f"{API}/contact/{created['id']}/reply", json={"message": "  "}, headers=headers
    )
    assert empty.status_code == 400


@pytest.mark.asyncio
async def test_delete_contact_message(async_client: AsyncClient, admin):
    created = (await async_client.post(f"{API}/contact", json=CONTACT)).json()["data"]
    headers = auth_headers(admin)
    resp = await async_client.delete(f"{API}/contact/{created['id']}", headers=headers)
    assert resp.status_code == 200
    gone = await async_client.get(f"{API}/contact/{created['id']}", headers=headers)
    assert gone.status_code == 404
