"""
Reporting & analytics endpoints.

Every report is recomputed from the source tables on each call: one query
per entity set, aggregated in Python. Nothing is cached.
"""

from __future__ import annotations

import csv
import io
import logging
import platform
import time
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy import func, or_, select, true
from sqlalchemy.ext.asyncio import AsyncSession

from devcore.api.v1.deps import (get_db, require_permission, require_roles,
                                 require_super_admin)
from devcore.core.config import settings
from devcore.core.permissions import ADMIN_ROLES, Permission
from devcore.db.base import ensure_utc, utcnow
from devcore.models.activity_log import ActivityLog
from devcore.models.project import Project
from devcore.models.task import Task
from devcore.models.user import User
from devcore.schemas.common import Envelope
from devcore.schemas.report import (ActivityReportRow, ExportRequest,
                                    ExportResult, FinancialReport,
                                    HealthResponse, ProjectReportRow,
                                    ReportRange, ReportStats, TaskReportRow,
                                    UserReportRow)
from devcore.services.mailer import smtp_is_configured
from devcore.services.queries import paginate
from devcore.services.rate_limit import SlidingWindowLimiter, get_reset_limiter

router = APIRouter(tags=["reports"])
logger = logging.getLogger(__name__)

report_user = require_roles(*ADMIN_ROLES)

ACTIVE_PROJECT_STATUSES = ("PENDING", "IN_PROGRESS")
OPEN_TASK_STATUSES = ("TODO", "IN_PROGRESS", "REVIEW")
EXPENSE_RATIO = 0.6
_STARTED = time.monotonic()

ACTIVITY_LABELS: dict[str, tuple[str, str]] = {
    "USER_CREATED": ("User Created", "User account was created"),
    "USER_APPROVED": ("User Approved", "User account was approved"),
    "USER_UPDATED": ("User Updated", "User account was updated"),
    "USER_DELETED": ("User Deleted", "User account was deleted"),
    "PROJECT_CREATED": ("Project Created", "New project was created"),
    "PROJECT_UPDATED": ("Project Updated", "Project was updated"),
    "PROJECT_DELETED": ("Project Deleted", "Project was deleted"),
    "TASK_CREATED": ("Task Created", "New task was created"),
    "TASK_ASSIGNED": ("Task Assigned", "Task was assigned to a developer"),
    "TASK_COMPLETED": ("Task Completed", "Task was marked as completed"),
    "TIME_LOGGED": ("Time Logged", "Hours were logged"),
    "COMMENT_ADDED": ("Comment Added", "A comment was posted"),
}


# ── Helpers ─────────────────────────────────────────────────────────
def range_cutoff(range_key: str, now: datetime | None = None) -> datetime | None:
    """Start of the reporting window; ``None`` means no lower bound."""
    now = now or utcnow()
    if range_key == "all":
        return None
    if range_key == "ytd":
        return datetime(now.year, 1, 1, tzinfo=timezone.utc)
    days = {"7d": 7, "30d": 30, "90d": 90, "6m": 180}[range_key]
    return now - timedelta(days=days)


def _since(column, cutoff: datetime | None):
    return column >= cutoff if cutoff is not None else true()


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def _person(user: User | None, role: str | None = None) -> dict | None:
    if user is None:
        return None
    return {
        "id": user.id,
        "name": user.full_name or "Unnamed User",
        "email": user.email,
        "role": role or user.role,
    }


def _is_overdue(task: Task, now: datetime) -> bool:
    due = ensure_utc(task.due_date)
    return due is not None and due < now and task.status != "DONE"


def _project_manager(project: Project) -> dict | None:
    """First admin-level member, else the first member."""
    members = list(project.members)
    for member in members:
        if member.user is not None and member.user.role in {r.value for r in ADMIN_ROLES}:
            return _person(member.user, member.role)
    if members:
        return _person(members[0].user, members[0].role)
    return None


async def _user_rows(db: AsyncSession, users: list[User]) -> list[dict]:
    ids = [u.id for u in users]
    project_counts: dict[int, int] = {}
    task_ids: dict[int, set[int]] = defaultdict(set)
    if ids:
        rows = await db.execute(
            select(Project.client_id, func.count())
            .where(Project.client_id.in_(ids))
            .group_by(Project.client_id)
        )
        project_counts = dict(rows.all())
        rows = await db.execute(
            select(Task.id, Task.assigned_to, Task.created_by).where(
                or_(Task.assigned_to.in_(ids), Task.created_by.in_(ids))
            )
        )
        for task_id, assignee, creator in rows.all():
            task_ids[assignee].add(task_id)
            task_ids[creator].add(task_id)
    return [
        {
            "id": u.id,
            "name": u.full_name or "Unnamed User",
            "email": u.email,
            "role": u.role,
            "is_active": bool(u.is_active),
            "is_approved": bool(u.is_approved),
            "created_at": u.created_at,
            "project_count": project_counts.get(u.id, 0),
            "task_count": len(task_ids.get(u.id, ())),
        }
        for u in users
    ]


async def _project_rows(db: AsyncSession, projects: list[Project]) -> list[dict]:
    ids = [p.id for p in projects]
    totals: dict[int, list[int]] = defaultdict(lambda: [0, 0])
    if ids:
        rows = await db.execute(
            select(Task.project_id, Task.status, func.count())
            .where(Task.project_id.in_(ids))
            .group_by(Task.project_id, Task.status)
        )
        for project_id, status, n in rows.all():
            totals[project_id][0] += n
            if status == "DONE":
                totals[project_id][1] += n
    payload = []
    for p in projects:
        task_total, done = totals.get(p.id, (0, 0))
        payload.append(
            {
                "id": p.id,
                "name": p.name,
                "description": p.description or "",
                "status": p.status,
                "priority": p.priority,
                "progress": round(done / task_total * 100) if task_total else 0,
                "budget": p.budget or 0.0,
                "start_date": p.start_date,
                "end_date": p.end_date,
                "client": _person(p.client),
                "manager": _project_manager(p),
                "task_count": task_total,
                "member_count": len(p.members),
                "created_at": p.created_at,
                "updated_at": p.updated_at,
            }
        )
    return payload


def _task_rows(tasks: list[Task]) -> list[dict]:
    now = utcnow()
    return [
        {
            "id": t.id,
            "title": t.title,
            "description": t.description or "",
            "status": t.status,
            "priority": t.priority,
            "project": t.project,
            "assigned_to": _person(t.assignee),
            "created_by": _person(t.creator),
            "due_date": t.due_date,
            "is_overdue": _is_overdue(t, now),
            "estimated_hours": t.estimated_hours or 0.0,
            "actual_hours": t.actual_hours or 0.0,
            "created_at": t.created_at,
            "updated_at": t.updated_at,
        }
        for t in tasks
    ]


async def build_financial(db: AsyncSession, cutoff: datetime | None) -> dict:
    """Monthly revenue buckets from project budgets; expenses are a flat ratio."""
    result = await db.execute(
        select(Project)
        .where(Project.budget > 0, _since(Project.created_at, cutoff))
        .order_by(Project.created_at.asc())
    )
    buckets: dict[tuple[int, int], dict[str, Any]] = {}
    for project in result.scalars().all():
        created = ensure_utc(project.created_at) or utcnow()
        bucket = buckets.setdefault(
            (created.year, created.month),
            {
                "month": created.strftime("%b %Y"),
                "revenue": 0.0,
                "project_count": 0,
                "completed_projects": 0,
                "ongoing_projects": 0,
                "cancelled_projects": 0,
            },
        )
        bucket["revenue"] += project.budget or 0.0
        bucket["project_count"] += 1
        if project.status == "COMPLETED":
            bucket["completed_projects"] += 1
        elif project.status == "CANCELLED":
            bucket["cancelled_projects"] += 1
        else:
            bucket["ongoing_projects"] += 1

    months = []
    for key in sorted(buckets):
        data = buckets[key]
        revenue = data["revenue"]
        expenses = revenue * EXPENSE_RATIO
        profit = revenue - expenses
        months.append(
            {
                **data,
                "revenue": round(revenue),
                "expenses": round(expenses),
                "profit": round(profit),
                "profit_margin": round(profit / revenue * 100, 1) if revenue else 0.0,
                "completion_rate": _rate(data["completed_projects"], data["project_count"]),
                "avg_project_cost": round(revenue / data["project_count"]),
            }
        )

    totals = {
        "revenue": sum(m["revenue"] for m in months),
        "expenses": sum(m["expenses"] for m in months),
        "profit": sum(m["profit"] for m in months),
        "project_count": sum(m["project_count"] for m in months),
        "completed_projects": sum(m["completed_projects"] for m in months),
    }
    totals["overall_profit_margin"] = (
        round(totals["profit"] / totals["revenue"] * 100, 1) if totals["revenue"] else 0.0
    )
    totals["overall_completion_rate"] = _rate(totals["completed_projects"], totals["project_count"])
    return {"months": months, "totals": totals}


async def _count(db: AsyncSession, model, *conditions) -> int:
    return await db.scalar(select(func.count()).select_from(model).where(*conditions)) or 0


def _store_ok(limiter: SlidingWindowLimiter) -> bool:
    try:
        return limiter.check()
    except Exception as exc:  # noqa: BLE001
        logger.error("Health check rate-limit store failure: %s", exc)
        return False


# ── Stats ───────────────────────────────────────────────────────────
@router.get("/reports/stats", response_model=Envelope[ReportStats])
async def report_stats(
    range_key: ReportRange = Query(default="30d", alias="range"),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(report_user),
) -> dict:
    cutoff = range_cutoff(range_key)
    total_users = await _count(db, User)
    new_users = await _count(db, User, _since(User.created_at, cutoff))

    rows = await db.execute(select(Project.status, func.count()).group_by(Project.status))
    projects_by_status = dict(rows.all())
    total_projects = sum(projects_by_status.values())
    completed_projects = projects_by_status.get("COMPLETED", 0)

    rows = await db.execute(select(Task.status, func.count()).group_by(Task.status))
    tasks_by_status = dict(rows.all())
    total_tasks = sum(tasks_by_status.values())
    completed_tasks = tasks_by_status.get("DONE", 0)

    revenue = await db.scalar(
        select(func.coalesce(func.sum(Project.budget), 0.0)).where(Project.budget > 0)
    )
    finished = await db.execute(
        select(Project.start_date, Project.end_date).where(
            Project.status == "COMPLETED",
            Project.start_date.is_not(None),
            Project.end_date.is_not(None),
        )
    )
    durations = [(ensure_utc(end) - ensure_utc(start)).days for start, end in finished.all()]

    return {
        "data": {
            "total_users": total_users,
            "active_users": await _count(db, User, User.is_active.is_(True)),
            "new_users": new_users,
            "total_projects": total_projects,
            "active_projects": sum(projects_by_status.get(s, 0) for s in ACTIVE_PROJECT_STATUSES),
            "completed_projects": completed_projects,
            "total_tasks": total_tasks,
            "completed_tasks": completed_tasks,
            "pending_tasks": sum(tasks_by_status.get(s, 0) for s in OPEN_TASK_STATUSES),
            "total_revenue": float(revenue or 0.0),
            "average_project_duration": round(sum(durations) / len(durations)) if durations else 0,
            "user_growth_rate": _rate(new_users, total_users),
            "project_completion_rate": _rate(completed_projects, total_projects),
            "task_completion_rate": _rate(completed_tasks, total_tasks),
        }
    }


# ── Entity reports ──────────────────────────────────────────────────
@router.get("/reports/users", response_model=Envelope[list[UserReportRow]])
async def users_report(
    range_key: ReportRange = Query(default="30d", alias="range"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(report_user),
) -> dict:
    stmt = (
        select(User)
        .where(_since(User.created_at, range_cutoff(range_key)))
        .order_by(User.created_at.desc(), User.id.desc())
    )
    users, pagination = await paginate(db, stmt, page, limit)
    return {"data": await _user_rows(db, users), "pagination": pagination}


@router.get("/reports/projects", response_model=Envelope[list[ProjectReportRow]])
async def projects_report(
    range_key: ReportRange = Query(default="30d", alias="range"),
    status: str | None = None,
    priority: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(report_user),
) -> dict:
    stmt = (
        select(Project)
        .where(_since(Project.created_at, range_cutoff(range_key)))
        .order_by(Project.created_at.desc(), Project.id.desc())
    )
    if status:
        stmt = stmt.where(Project.status == status)
    if priority:
        stmt = stmt.where(Project.priority == priority)
    projects, pagination = await paginate(db, stmt, page, limit)
    return {"data": await _project_rows(db, projects), "pagination": pagination}


@router.get("/reports/financial", response_model=Envelope[FinancialReport])
async def financial_report(
    range_key: ReportRange = Query(default="6m", alias="range"),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(report_user),
) -> dict:
    return {"data": await build_financial(db, range_cutoff(range_key))}


@router.get("/reports/tasks", response_model=Envelope[list[TaskReportRow]])
async def tasks_report(
    range_key: ReportRange = Query(default="30d", alias="range"),
    status: str | None = None,
    priority: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(report_user),
) -> dict:
    stmt = (
        select(Task)
        .where(_since(Task.created_at, range_cutoff(range_key)))
        .order_by(Task.created_at.desc(), Task.id.desc())
    )
    if status:
        stmt = stmt.where(Task.status == status)
    if priority:
        stmt = stmt.where(Task.priority == priority)
    tasks, pagination = await paginate(db, stmt, page, limit)
    return {"data": _task_rows(tasks), "pagination": pagination}


@router.get("/reports/activity", response_model=Envelope[list[ActivityReportRow]])
async def activity_report(
    range_key: ReportRange = Query(default="30d", alias="range"),
    limit: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(
        require_permission(Permission.VIEW_ALL_PROJECTS, *ADMIN_ROLES)
    ),
) -> dict:
    result = await db.execute(
        select(ActivityLog)
        .where(_since(ActivityLog.created_at, range_cutoff(range_key)))
        .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .limit(limit)
    )
    rows = []
    for log in result.scalars().all():
        title, description = ACTIVITY_LABELS.get(log.type, ("Activity", "System activity performed"))
        rows.append(
            {
                "id": log.id,
                "type": log.type,
                "title": title,
                "description": description,
                "timestamp": log.created_at,
                "user": _person(log.performed_by),
                "details": log.details or {},
            }
        )
    return {"data": rows}


# ── Health ──────────────────────────────────────────────────────────
@router.get("/reports/health", response_model=Envelope[dict])
async def system_health(
    request: Request,
    db: AsyncSession = Depends(get_db),
    limiter: SlidingWindowLimiter = Depends(get_reset_limiter),
    _admin: User = Depends(require_super_admin),
) -> dict:
    """Detailed health for super admins: database counts, process info, services."""
    db_ok = await request.app.state.database.ping()
    limiter_ok = _store_ok(limiter)
    uptime = int(time.monotonic() - _STARTED)
    days, rem = divmod(uptime, 86400)
    hours, rem = divmod(rem, 3600)
    return {
        "data": {
            "timestamp": utcnow().isoformat(),
            "database": {
                "status": "healthy" if db_ok else "unhealthy",
                "counts": {
                    "totalUsers": await _count(db, User),
                    "activeUsers": await _count(db, User, User.is_active.is_(True)),
                    "totalProjects": await _count(db, Project),
                    "activeProjects": await _count(
                        db, Project, Project.status.in_(ACTIVE_PROJECT_STATUSES)
                    ),
                    "totalTasks": await _count(db, Task),
                    "pendingTasks": await _count(db, Task, Task.status.in_(OPEN_TASK_STATUSES)),
                },
            },
            "server": {
                "uptime": f"{days}d {hours}h {rem // 60}m",
                "pythonVersion": platform.python_version(),
                "platform": platform.platform(),
                "version": settings.VERSION,
            },
            "services": {
                "database": "online" if db_ok else "offline",
                "rateLimitStore": "online" if limiter_ok else "offline",
                "email": "configured" if smtp_is_configured() else "not configured",
            },
        }
    }


@router.get("/health", response_model=HealthResponse)
async def health(
    request: Request,
    limiter: SlidingWindowLimiter = Depends(get_reset_limiter),
) -> HealthResponse:
    """Public health check: database and rate-limit store connectivity."""
    db_ok = await request.app.state.database.ping()
    store_ok = _store_ok(limiter)
    return HealthResponse(
        status="ok" if db_ok and store_ok else "degraded",
        db=db_ok,
        rate_limit_store=store_ok,
    )


# ── Export ──────────────────────────────────────────────────────────
async def _export_rows(db: AsyncSession, kind: str, cutoff: datetime | None) -> list[dict]:
    if kind == "users":
        result = await db.execute(
            select(User).where(_since(User.created_at, cutoff)).order_by(User.created_at.desc())
        )
        return await _user_rows(db, list(result.scalars().all()))
    if kind == "projects":
        result = await db.execute(
            select(Project)
            .where(_since(Project.created_at, cutoff))
            .order_by(Project.created_at.desc())
        )
        rows = await _project_rows(db, list(result.scalars().all()))
        for row in rows:
            row["client"] = row["client"]["name"] if row["client"] else ""
            row["manager"] = row["manager"]["name"] if row["manager"] else ""
        return rows
    if kind == "tasks":
        result = await db.execute(
            select(Task).where(_since(Task.created_at, cutoff)).order_by(Task.created_at.desc())
        )
        rows = _task_rows(list(result.scalars().all()))
        for row in rows:
            row["project"] = row["project"].name if row["project"] else ""
            row["assigned_to"] = row["assigned_to"]["name"] if row["assigned_to"] else ""
            row["created_by"] = row["created_by"]["name"] if row["created_by"] else ""
        return rows
    return (await build_financial(db, cutoff))["months"]


@router.post("/reports/export", response_model=Envelope[ExportResult])
async def export_report(
    body: ExportRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(report_user),
):
    """Flat rows for one report; ``format=csv`` streams a file download."""
    rows = await _export_rows(db, body.type, range_cutoff(body.range))
    generated = utcnow()
    file_name = f"{body.type}_report_{generated:%Y-%m-%d}"
    logger.info("User %s exported %d %s rows", current_user.id, len(rows), body.type)

    if body.format == "csv":
        def iter_csv():
            if not rows:
                return
            buffer = io.StringIO()
            writer = csv.DictWriter(buffer, fieldnames=list(rows[0]))
            writer.writeheader()
            for row in rows:
                writer.writerow(row)
                yield buffer.getvalue()
                buffer.seek(0)
                buffer.truncate(0)

        return StreamingResponse(
            iter_csv(),
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename={file_name}.csv"},
        )

    return {
        "data": {
            "type": body.type,
            "format": body.format,
            "file_name": file_name,
            "generated_at": generated,
            "range": body.range,
            "records": len(rows),
            "data": rows,
        }
    }
