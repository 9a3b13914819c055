"""Tests for project CRUD, status workflow and membership."""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from conftest import API, auth_headers
from devcore.core.permissions import Role
from devcore.models.notification import Notification
from devcore.models.project import ProjectMember


@pytest.mark.asyncio
async def test_create_project_notifies_client(
    async_client: AsyncClient, admin, client_user, db_session
):
    resp = await async_client.post(
        f"{API}/projects",
        json={"name": "  Mobile App ", "clientId": client_user.id, "budget": 12000},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["name"] == "Mobile App"
    assert data["status"] == "PENDING"
    assert data["client"]["id"] == client_user.id

    notice = await db_session.scalar(select(Notification).where(Notification.user_id == client_user.id))
    assert notice.title == "New Project Created"


@pytest.mark.asyncio
async def test_project_client_must_be_a_client(async_client: AsyncClient, admin, developer):
    resp = await async_client.post(
        f"{API}/projects",
        json={"name": "Internal", "clientId": developer.id},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 404
    assert resp.json()["error"] == "Client not found or invalid"


@pytest.mark.asyncio
async def test_developer_needs_grant_to_create(async_client: AsyncClient, developer, client_user):
    resp = await async_client.post(
        f"{API}/projects",
        json={"name": "Side quest", "clientId": client_user.id},
        headers=auth_headers(developer),
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_negative_budget_rejected(async_client: AsyncClient, admin, client_user):
    resp = await async_client.post(
        f"{API}/projects",
        json={"name": "Cheap", "clientId": client_user.id, "budget": -1},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_project_visibility(
    async_client: AsyncClient, make_user, make_project, client_user, developer
):
    project = await make_project(client_user, developer)
    outsider = await make_user(Role.DEVELOPER)
    other_client = await make_user(Role.CLIENT)

    for viewer in (client_user, developer):
        resp = await async_client.get(f"{API}/projects/{project.id}", headers=auth_headers(viewer))
        assert resp.status_code == 200

    for viewer in (outsider, other_client):
        resp = await async_client.get(f"{API}/projects/{project.id}", headers=auth_headers(viewer))
        assert resp.status_code == 403

    watcher = await make_user(Role.DEVELOPER, can_view_all_projects=True)
    resp = await async_client.get(f"{API}/projects/{project.id}", headers=auth_headers(watcher))
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_project_detail_counts_tasks(
    async_client: AsyncClient, make_project, make_task, admin, client_user
):
    project = await make_project(client_user)
    await make_task(project, admin)
    await make_task(project, admin, title="Ship it", status="DONE")

    resp = await async_client.get(f"{API}/projects/{project.id}", headers=auth_headers(admin))
    data = resp.json()["data"]
    assert data["taskCount"] == 2
    assert data["completedTaskCount"] == 1
    assert len(data["tasks"]) == 2


@pytest.mark.asyncio
async def test_client_owner_may_edit_but_not_others(
    async_client: AsyncClient, make_project, make_user, client_user, developer
):
    project = await make_project(client_user, developer)

    resp = await async_client.patch(
        f"{API}/projects/{project.id}", json={"description": "New brief"}, headers=auth_headers(client_user)
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["description"] == "New brief"

    resp = await async_client.patch(
        f"{API}/projects/{project.id}", json={"description": "Nope"}, headers=auth_headers(developer)
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_null_name_is_ignored_on_update(async_client: AsyncClient, make_project, admin, client_user):
    project = await make_project(client_user, name="Keep Me")
    resp = await async_client.patch(
        f"{API}/projects/{project.id}", json={"name": None, "priority": "HIGH"}, headers=auth_headers(admin)
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["name"] == "Keep Me"
    assert resp.json()["data"]["priority"] == "HIGH"


@pytest.mark.asyncio
async def test_status_change_notifies_client(
    async_client: AsyncClient, make_project, admin, client_user, db_session
):
    project = await make_project(client_user)
    resp = await async_client.patch(
        f"{API}/projects/{project.id}/status", json={"status": "IN_PROGRESS"}, headers=auth_headers(admin)
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "IN_PROGRESS"

    notice = await db_session.scalar(select(Notification).where(Notification.user_id == client_user.id))
    assert notice.title == "Project Status Updated"

    bad = await async_client.patch(
        f"{API}/projects/{project.id}/status", json={"status": "ARCHIVED"}, headers=auth_headers(admin)
    )
    assert bad.status_code == 400


@pytest.mark.asyncio
async def test_delete_project_with_tasks_conflicts(
    async_client: AsyncClient, make_project, make_task, super_admin, client_user
):
    project = await make_project(client_user)
    await make_task(project, super_admin)
    resp = await async_client.delete(f"{API}/projects/{project.id}", headers=auth_headers(super_admin))
    assert resp.status_code == 409
    assert resp.json()["taskCount"] == 1


@pytest.mark.asyncio
async def test_delete_empty_project_removes_members(
    async_client: AsyncClient, make_project, super_admin, admin, client_user, developer, db_session
):
    project = await make_project(client_user, developer)

    denied = await async_client.delete(f"{API}/projects/{project.id}", headers=auth_headers(admin))
    assert denied.status_code == 403

    resp = await async_client.delete(f"{API}/projects/{project.id}", headers=auth_headers(super_admin))
    assert resp.status_code == 200
    remaining = await db_session.scalar(
        select(func.count()).select_from(ProjectMember).where(ProjectMember.project_id == project.id)
    )
    assert remaining == 0

    gone = await async_client.get(f"{API}/projects/{project.id}", headers=auth_headers(super_admin))
    assert gone.status_code == 404


@pytest.mark.asyncio
async def test_membership_lifecycle(
    async_client: AsyncClient, make_project, admin, client_user, developer
):
    project = await make_project(client_user)
    headers = auth_headers(admin)

    added = await async_client.post(
        f"{API}/projects/{project.id}/members", json={"userId": developer.id, "role": "Lead"}, headers=headers
    )
    assert added.status_code == 201
    assert added.json()["data"]["role"] == "Lead"

    duplicate = await async_client.post(
        f"{API}/projects/{project.id}/members", json={"userId": developer.id}, headers=headers
    )
    assert duplicate.status_code == 409

    as_client = await async_client.post(
        f"{API}/projects/{project.id}/members", json={"userId": client_user.id}, headers=headers
    )
    assert as_client.status_code == 400

    members = await async_client.get(f"{API}/projects/{project.id}/members", headers=headers)
    roles = {m["userId"]: m["role"] for m in members.json()["data"]}
    assert roles == {client_user.id: "Client", developer.id: "Lead"}

    removed = await async_client.delete(f"{API}/projects/{project.id}/members/{developer.id}", headers=headers)
    assert removed.status_code == 200
    missing = await async_client.delete(f"{API}/projects/{project.id}/members/{developer.id}", headers=headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_list_filters_and_my_projects(
    async_client: AsyncClient, make_project, make_user, admin, client_user
):
    other = await make_user(Role.CLIENT)
    await make_project(client_user, name="Alpha")
    await make_project(client_user, name="Beta", status="COMPLETED")
    await make_project(other, name="Gamma")

    resp = await async_client.get(
        f"{API}/projects?clientId={client_user.id}", headers=auth_headers(admin)
    )
    assert {p["name"] for p in resp.json()["data"]} == {"Alpha", "Beta"}

    resp = await async_client.get(f"{API}/projects?status=COMPLETED", headers=auth_headers(admin))
    assert [p["name"] for p in resp.json()["data"]] == ["Beta"]

    resp = await async_client.get(f"{API}/projects?search=gam", headers=auth_headers(admin))
    assert [p["name"] for p in resp.json()["data"]] == ["Gamma"]

    mine = await async_client.get(f"{API}/projects/my-projects", headers=auth_headers(client_user))
    assert len(mine.json()["data"]) == 2

    stats = await async_client.get(f"{API}/projects/stats", headers=auth_headers(admin))
    assert stats.json()["data"]["byStatus"]["COMPLETED"] == 1
    assert stats.json()["data"]["total"] == 3
