"""Tests for reporting, analytics, export and health checks."""

import csv
import io
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from conftest import API, auth_headers
from devcore.api.v1.endpoints.reports import range_cutoff
from devcore.core.permissions import Role


def test_range_cutoff_windows():
    now = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)
    assert range_cutoff("7d", now) == now - timedelta(days=7)
    assert range_cutoff("6m", now) == now - timedelta(days=180)
    assert range_cutoff("ytd", now) == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert range_cutoff("all", now) is None


@pytest.mark.asyncio
async def test_public_health(async_client: AsyncClient):
    resp = await async_client.get(f"{API}/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "db": True, "rate_limit_store": True}


@pytest.mark.asyncio
async def test_detailed_health_is_super_admin_only(async_client: AsyncClient, admin, super_admin):
    denied = await async_client.get(f"{API}/reports/health", headers=auth_headers(admin))
    assert denied.status_code == 403

    resp = await async_client.get(f"{API}/reports/health", headers=auth_headers(super_admin))
    data = resp.json()["data"]
    assert data["database"]["status"] == "healthy"
    assert data["database"]["counts"]["totalUsers"] == 2
    assert data["services"]["email"] == "not configured"


@pytest.mark.asyncio
async def test_reports_are_admin_only(async_client: AsyncClient, developer):
    resp = await async_client.get(f"{API}/reports/stats", headers=auth_headers(developer))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_stats_rates(
    async_client: AsyncClient, make_project, make_task, admin, client_user
):
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    done = await make_project(
        client_user, status="COMPLETED", budget=3000, start_date=start, end_date=start + timedelta(days=10)
    )
    await make_project(client_user, budget=1000)
    await make_task(done, admin, status="DONE")
    await make_task(done, admin)
    await make_task(done, admin, status="REVIEW")

    resp = await async_client.get(f"{API}/reports/stats?range=all", headers=auth_headers(admin))
    data = resp.json()["data"]
    assert data["totalProjects"] == 2
    assert data["completedProjects"] == 1
    assert data["activeProjects"] == 1
    assert data["projectCompletionRate"] == 50.0
    assert data["taskCompletionRate"] == 33.3
    assert data["pendingTasks"] == 2
    assert data["totalRevenue"] == 4000.0
    assert data["averageProjectDuration"] == 10


@pytest.mark.asyncio
async def test_unknown_range_rejected(async_client: AsyncClient, admin):
    resp = await async_client.get(f"{API}/reports/stats?range=2y", headers=auth_headers(admin))
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_financial_uses_expense_ratio(async_client: AsyncClient, make_project, admin, client_user):
    await make_project(client_user, budget=10000, status="COMPLETED")
    await make_project(client_user, budget=5000)
    await make_project(client_user)

    resp = await async_client.get(f"{API}/reports/financial", headers=auth_headers(admin))
    report = resp.json()["data"]
    assert len(report["months"]) == 1
    month = report["months"][0]
    assert month["revenue"] == 15000
    assert month["expenses"] == 9000
    assert month["profit"] == 6000
    assert month["profitMargin"] == 40.0
    assert month["completionRate"] == 50.0
    assert report["totals"]["projectCount"] == 2


@pytest.mark.asyncio
async def test_project_report_progress_and_manager(
    async_client: AsyncClient, make_project, make_task, admin, client_user, developer
):
    project = await make_project(client_user, developer, admin)
    await make_task(project, admin, status="DONE")
    await make_task(project, admin)

    resp = await async_client.get(f"{API}/reports/projects", headers=auth_headers(admin))
    row = resp.json()["data"][0]
    assert row["progress"] == 50
    assert row["memberCount"] == 2
    assert row["manager"]["id"] == admin.id
    assert row["client"]["id"] == client_user.id


@pytest.mark.asyncio
async def test_task_report_flags_overdue(
    async_client: AsyncClient, make_project, make_task, admin, client_user
):
    project = await make_project(client_user)
    yesterday = datetime.now(timezone.utc) - timedelta(days=1)
    await make_task(project, admin, title="Late", due_date=yesterday)
    await make_task(project, admin, title="Late but done", due_date=yesterday, status="DONE")

    resp = await async_client.get(f"{API}/reports/tasks", headers=auth_headers(admin))
    flags = {row["title"]: row["isOverdue"] for row in resp.json()["data"]}
    assert flags == {"Late": True, "Late but done": False}


@pytest.mark.asyncio
async def test_user_report_counts(
    async_client: AsyncClient, make_project, make_task, admin, client_user, developer
):
    project = await make_project(client_user)
    await make_task(project, admin, assigned_to=developer.id)

    resp = await async_client.get(f"{API}/reports/users", headers=auth_headers(admin))
    rows = {row["id"]: row for row in resp.json()["data"]}
    assert rows[client_user.id]["projectCount"] == 1
    assert rows[developer.id]["taskCount"] == 1
    assert rows[admin.id]["taskCount"] == 1


@pytest.mark.asyncio
async def test_activity_feed_needs_view_all_grant(
    async_client: AsyncClient, make_user, admin, super_admin
):
    await make_user(Role.DEVELOPER, is_approved=None)
    denied = await async_client.get(f"{API}/reports/activity", headers=auth_headers(admin))
    assert denied.status_code == 403

    viewer = await make_user(Role.ADMIN, can_view_all_projects=True)
    await async_client.post(
        f"{API}/projects",
        json={"name": "Audit me", "clientId": (await make_user(Role.CLIENT)).id},
        headers=auth_headers(super_admin),
    )
    resp = await async_client.get(f"{API}/reports/activity", headers=auth_headers(viewer))
    assert resp.status_code == 200
    entry = resp.json()["data"][0]
    assert entry["type"] == "PROJECT_CREATED"
    assert entry["title"] == "Project Created"
    assert entry["user"]["id"] == super_admin.id


@pytest.mark.asyncio
async def test_export_json_and_csv(async_client: AsyncClient, make_project, admin, client_user):
    await make_project(client_user, name="Exported", budget=800)
    headers = auth_headers(admin)

    resp = await async_client.post(
        f"{API}/reports/export", json={"type": "projects", "format": "json"}, headers=headers
    )
    result = resp.json()["data"]
    assert result["records"] == 1
    assert result["data"][0]["client"] == client_user.full_name
    assert result["fileName"].startswith("projects_report_")

    resp = await async_client.post(
        f"{API}/reports/export", json={"type": "projects", "format": "csv"}, headers=headers
    )
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert "attachment; filename=projects_report_" in resp.headers["content-disposition"]
    rows = list(csv.DictReader(io.StringIO(resp.text)))
    assert rows[0]["name"] == "Exported"

    bad = await async_client.post(
        f"{API}/reports/export", json={"type": "invoices"}, headers=headers
    )
    assert bad.status_code == 400
