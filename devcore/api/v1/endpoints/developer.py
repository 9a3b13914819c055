"""
Developer workspace (``/dev``): the caller's own tasks, their comments and
time logs.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from devcore.api.v1.deps import get_db, get_effects, require_roles
from devcore.core.exceptions import NotFound
from devcore.core.permissions import STAFF_ROLES
from devcore.db.base import utcnow
from devcore.models.project import ProjectMember
from devcore.models.task import Comment, Task, TimeLog
from devcore.models.user import User
from devcore.schemas.common import Envelope
from devcore.schemas.task import (CommentCreate, CommentRead, DeveloperStats,
                                  TaskPriority, TaskRead, TaskStatus,
                                  TaskStatusUpdate, TimeLogCreate, TimeLogRead)
from devcore.services import access, audit
from devcore.services.audit import PostCommitEffects
from devcore.services.queries import recompute_actual_hours

router = APIRouter(prefix="/dev", tags=["developer"])
logger = logging.getLogger(__name__)

staff_user = require_roles(*STAFF_ROLES)


async def _own_task(db: AsyncSession, task_id: int, user: User) -> Task:
    """A task the caller is assigned to or created; anything else is hidden."""
    task = await db.scalar(
        select(Task)
        .where(
            Task.id == task_id,
            or_(Task.assigned_to == user.id, Task.created_by == user.id),
        )
        .execution_options(populate_existing=True)
    )
    if task is None:
        raise NotFound("Task not found or access denied")
    return task


@router.get("/stats", response_model=Envelope[DeveloperStats])
async def developer_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(staff_user),
) -> dict:
    rows = await db.execute(
        select(Task.status, func.count())
        .where(Task.assigned_to == current_user.id)
        .group_by(Task.status)
    )
    by_status = dict(rows.all())
    projects = await db.scalar(
        select(func.count()).select_from(ProjectMember).where(ProjectMember.user_id == current_user.id)
    )
    return {
        "data": {
            "total_tasks": sum(by_status.values()),
            "completed_tasks": by_status.get("DONE", 0),
            "in_progress_tasks": by_status.get("IN_PROGRESS", 0),
            "projects": projects or 0,
        }
    }


@router.get("/tasks", response_model=Envelope[list[TaskRead]])
async def developer_tasks(
    status: TaskStatus | None = None,
    priority: TaskPriority | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(staff_user),
) -> dict:
    stmt = (
        select(Task)
        .where(Task.assigned_to == current_user.id)
        .order_by(Task.due_date.asc().nulls_last(), Task.created_at.desc())
    )
    if status:
        stmt = stmt.where(Task.status == status)
    if priority:
        stmt = stmt.where(Task.priority == priority)
    result = await db.execute(stmt)
    return {"data": result.scalars().all()}


@router.get("/tasks/{task_id}", response_model=Envelope[TaskRead])
async def developer_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(staff_user),
) -> dict:
    return {"data": await _own_task(db, task_id, current_user)}


@router.patch("/tasks/{task_id}", response_model=Envelope[TaskRead])
async def update_task_status(
    task_id: int,
    body: TaskStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(staff_user),
    effects: PostCommitEffects = Depends(get_effects),
) -> dict:
    task = await _own_task(db, task_id, current_user)
    access.ensure_is_assignee(current_user, task)

    old_status = task.status
    task.status = body.status
    if body.status != old_status:
        task.completed_at = utcnow() if body.status == "DONE" else None
    await db.commit()
    task = await _own_task(db, task_id, current_user)

    effects.activity(
        audit.TASK_COMPLETED if body.status == "DONE" and old_status != "DONE" else audit.TASK_UPDATED,
        current_user.id,
        task.id,
        "task",
        {"oldStatus": old_status, "newStatus": body.status, "title": task.title},
    )
    await effects.run(db)
    return {"message": "Task status updated", "data": task}


# ── Comments ────────────────────────────────────────────────────────
@router.get("/tasks/{task_id}/comments", response_model=Envelope[list[CommentRead]])
async def task_comments(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(staff_user),
) -> dict:
    await _own_task(db, task_id, current_user)
    result = await db.execute(
        select(Comment)
        .where(Comment.task_id == task_id)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
    )
    return {"data": result.scalars().all()}


@router.post("/tasks/{task_id}/comments", response_model=Envelope[CommentRead], status_code=201)
async def add_task_comment(
    task_id: int,
    body: CommentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(staff_user),
    effects: PostCommitEffects = Depends(get_effects),
) -> dict:
    task = await _own_task(db, task_id, current_user)
    comment = Comment(
        task_id=task.id,
        project_id=task.project_id,
        user_id=current_user.id,
        content=body.content,
    )
    db.add(comment)
    await db.commit()
    await db.refresh(comment, attribute_names=["user"])

    effects.activity(
        audit.COMMENT_ADDED,
        current_user.id,
        task.id,
        "task",
        {"commentId": comment.id, "taskTitle": task.title},
    )
    await effects.run(db)
    return {"message": "Comment added successfully", "data": comment}


# ── Time logs ───────────────────────────────────────────────────────
@router.get("/tasks/{task_id}/time-logs", response_model=Envelope[list[TimeLogRead]])
async def task_time_logs(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(staff_user),
) -> dict:
    await _own_task(db, task_id, current_user)
    result = await db.execute(
        select(TimeLog)
        .where(TimeLog.task_id == task_id)
        .order_by(TimeLog.date.desc(), TimeLog.id.desc())
    )
    return {"data": result.scalars().all()}


@router.post("/tasks/{task_id}/time-logs", response_model=Envelope[TimeLogRead], status_code=201)
async def add_time_log(
    task_id: int,
    body: TimeLogCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(staff_user),
    effects: PostCommitEffects = Depends(get_effects),
) -> dict:
    """Record hours and recompute the task's ``actual_hours`` from all of its logs."""
    task = await _own_task(db, task_id, current_user)
    log = TimeLog(
        task_id=task.id,
        user_id=current_user.id,
        hours=body.hours,
        description=body.description,
        date=body.date or utcnow(),
    )
    db.add(log)
    total = await recompute_actual_hours(db, task)
    await db.commit()
    await db.refresh(log, attribute_names=["user"])
    logger.info("User %s logged %.2fh on task %s (total %.2fh)", current_user.id, body.hours, task.id, total)

    effects.activity(
        audit.TIME_LOGGED,
        current_user.id,
        task.id,
        "task",
        {"hours": body.hours, "taskTitle": task.title, "totalHours": total},
    )
    await effects.run(db)
    return {"message": "Time logged successfully", "data": log}
