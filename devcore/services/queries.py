"""
Lookup helpers shared by the endpoint modules.
"""

from __future__ import annotations

from typing import Any, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from devcore.core.exceptions import NotFound
from devcore.db.base import Base
from devcore.models.project import Project
from devcore.models.task import Task, TimeLog
from devcore.models.user import User
from devcore.schemas.common import Pagination

M = TypeVar("M", bound=Base)


async def get_or_404(db: AsyncSession, model: type[M], obj_id: int, label: str | None = None) -> M:
    """Load a row by primary key, re-populating any stale identity-map copy."""
    result = await db.execute(
        select(model).where(model.id == obj_id).execution_options(populate_existing=True)  # type: ignore[attr-defined]
    )
    obj = result.scalar_one_or_none()
    if obj is None:
        raise NotFound(f"{label or model.__name__} not found")
    return obj


async def get_user_or_404(db: AsyncSession, user_id: int) -> User:
    return await get_or_404(db, User, user_id, "User")


async def get_project_or_404(db: AsyncSession, project_id: int) -> Project:
    return await get_or_404(db, Project, project_id, "Project")


async def get_task_or_404(db: AsyncSession, task_id: int) -> Task:
    return await get_or_404(db, Task, task_id, "Task")


def member_ids(project: Project) -> tuple[int, ...]:
    return tuple(m.user_id for m in project.members)


def project_party_ids(project: Project) -> tuple[int, ...]:
    """Client owner plus every member."""
    return (project.client_id, *member_ids(project))


async def paginate(
    db: AsyncSession,
    stmt: Select[Any],
    page: int,
    limit: int,
) -> tuple[list[Any], Pagination]:
    """Run *stmt* for one page and count the full result set."""
    total = await db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0
    result = await db.execute(stmt.offset((page - 1) * limit).limit(limit))
    return list(result.scalars().all()), Pagination.build(page, limit, total)


async def recompute_actual_hours(db: AsyncSession, task: Task) -> float:
    """Set ``task.actual_hours`` to the sum of its time logs (flushes pending logs first)."""
    await db.flush()
    total = await db.scalar(
        select(func.coalesce(func.sum(TimeLog.hours), 0.0)).where(TimeLog.task_id == task.id)
    )
    task.actual_hours = float(total or 0.0)
    return task.actual_hours
