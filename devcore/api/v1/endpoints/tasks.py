"""
Task endpoints: listing, assignment and lifecycle.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from devcore.api.v1.deps import get_current_active_user, get_db, get_effects
from devcore.core.exceptions import NotFound, PermissionDenied
from devcore.db.base import utcnow
from devcore.models.task import Comment, Task, TimeLog
from devcore.models.user import User
from devcore.schemas.common import Envelope, MessageResponse
from devcore.schemas.task import (DeveloperWorkload, TaskAssign, TaskCreate,
                                  TaskPriority, TaskRead, TaskStatus,
                                  TaskUpdate)
from devcore.services import access, audit
from devcore.services.audit import PostCommitEffects
from devcore.services.queries import (get_project_or_404, get_task_or_404,
                                      get_user_or_404, member_ids)

router = APIRouter(prefix="/tasks", tags=["tasks"])
logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ("TODO", "IN_PROGRESS")


def _notify_assignee(effects: PostCommitEffects, task: Task, title: str) -> None:
    effects.notify(
        task.assigned_to,
        title,
        f"You have been assigned to: {task.title}",
        "task_assigned",
        f"/dashboard/tasks/{task.id}",
    )


# ── Listing ─────────────────────────────────────────────────────────
@router.get("", response_model=Envelope[list[TaskRead]])
async def list_tasks(
    status: TaskStatus | None = None,
    priority: TaskPriority | None = None,
    project_id: int | None = Query(default=None, alias="projectId"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    """Admins see every task; everyone else sees what they created or were given."""
    stmt = select(Task).order_by(Task.due_date.asc().nulls_last(), Task.created_at.desc())
    if not access.is_admin_level(current_user):
        stmt = stmt.where(
            or_(Task.assigned_to == current_user.id, Task.created_by == current_user.id)
        )
    if status:
        stmt = stmt.where(Task.status == status)
    if priority:
        stmt = stmt.where(Task.priority == priority)
    if project_id is not None:
        stmt = stmt.where(Task.project_id == project_id)
    result = await db.execute(stmt)
    return {"data": result.scalars().all()}


@router.get("/my-tasks", response_model=Envelope[list[TaskRead]])
async def my_tasks(
    status: TaskStatus | None = None,
    priority: TaskPriority | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    stmt = (
        select(Task)
        .where(Task.assigned_to == current_user.id)
        .order_by(Task.due_date.asc().nulls_last(), Task.priority.desc())
    )
    if status:
        stmt = stmt.where(Task.status == status)
    if priority:
        stmt = stmt.where(Task.priority == priority)
    result = await db.execute(stmt)
    return {"data": result.scalars().all()}


@router.get("/available-developers", response_model=Envelope[list[DeveloperWorkload]])
async def available_developers(
    project_id: int = Query(alias="projectId"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    """Project members with their count of open (TODO / IN_PROGRESS) tasks."""
    project = await get_project_or_404(db, project_id)
    access.ensure_can_view_project(current_user, project)

    ids = list(member_ids(project))
    workload: dict[int, int] = {}
    if ids:
        rows = await db.execute(
            select(Task.assigned_to, func.count())
            .where(Task.assigned_to.in_(ids), Task.status.in_(ACTIVE_STATUSES))
            .group_by(Task.assigned_to)
        )
        workload = dict(rows.all())

    developers = []
    for member in project.members:
        row = DeveloperWorkload.model_validate(member.user).model_dump()
        row["active_tasks"] = workload.get(member.user_id, 0)
        developers.append(row)
    return {"data": developers}


# ── CRUD ────────────────────────────────────────────────────────────
@router.post("", response_model=Envelope[TaskRead], status_code=201)
async def create_task(
    body: TaskCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    effects: PostCommitEffects = Depends(get_effects),
) -> dict:
    project = await get_project_or_404(db, body.project_id)
    access.ensure_can_create_task(current_user, project)

    if body.assigned_to is not None:
        if not access.can_assign_tasks(current_user):
            raise PermissionDenied("You do not have permission to assign tasks")
        assignee = await get_user_or_404(db, body.assigned_to)
        access.ensure_assignable(current_user, project, assignee)

    task = Task(**body.model_dump(), created_by=current_user.id)
    db.add(task)
    await db.commit()
    task = await get_task_or_404(db, task.id)
    logger.info("Task %s created in project %s by user %s", task.id, project.id, current_user.id)

    effects.activity(
        audit.TASK_CREATED,
        current_user.id,
        task.id,
        "task",
        {"title": task.title, "projectId": project.id, "assignedTo": task.assigned_to},
    )
    if task.assigned_to is not None:
        _notify_assignee(effects, task, "New Task Assigned")
    await effects.run(db)
    return {"message": "Task created successfully", "data": task}


@router.get("/{task_id}", response_model=Envelope[TaskRead])
async def get_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    task = await get_task_or_404(db, task_id)
    access.ensure_can_view_task(current_user, task)
    return {"data": task}


@router.patch("/{task_id}/assign", response_model=Envelope[TaskRead])
async def assign_task(
    task_id: int,
    body: TaskAssign,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    effects: PostCommitEffects = Depends(get_effects),
) -> dict:
    if not access.can_assign_tasks(current_user):
        raise PermissionDenied("You do not have permission to assign tasks")
    task = await get_task_or_404(db, task_id)

    if body.assigned_to is not None:
        assignee = await get_user_or_404(db, body.assigned_to)
        access.ensure_assignable(current_user, task.project, assignee)

    previous = task.assigned_to
    task.assigned_to = body.assigned_to
    await db.commit()
    task = await get_task_or_404(db, task_id)

    effects.activity(
        audit.TASK_ASSIGNED,
        current_user.id,
        task.id,
        "task",
        {"previousAssignee": previous, "newAssignee": task.assigned_to},
    )
    if task.assigned_to is not None:
        _notify_assignee(effects, task, "Task Assigned to You")
    await effects.run(db)
    return {"message": "Task assigned successfully", "data": task}


@router.patch("/{task_id}", response_model=Envelope[TaskRead])
async def update_task(
    task_id: int,
    body: TaskUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    effects: PostCommitEffects = Depends(get_effects),
) -> dict:
    task = await get_task_or_404(db, task_id)
    access.ensure_can_update_task(current_user, task)

    changes = body.model_dump(exclude_unset=True)
    for field in ("title", "status", "priority"):
        if field in changes and changes[field] is None:
            del changes[field]

    reassigned = "assigned_to" in changes and changes["assigned_to"] != task.assigned_to
    if reassigned:
        target = changes["assigned_to"]
        if not access.can_assign_tasks(current_user) and target != current_user.id:
            raise PermissionDenied("You can only assign tasks to yourself")
        if target is not None:
            assignee = await get_user_or_404(db, target)
            access.ensure_assignable(current_user, task.project, assignee)

    old_status = task.status
    for field, value in changes.items():
        setattr(task, field, value)
    if task.status != old_status:
        task.completed_at = utcnow() if task.status == "DONE" else None
    await db.commit()
    task = await get_task_or_404(db, task_id)

    effects.activity(
        audit.TASK_UPDATED, current_user.id, task.id, "task", {"updates": sorted(changes)}
    )
    if task.status == "DONE" and old_status != "DONE":
        effects.activity(
            audit.TASK_COMPLETED,
            current_user.id,
            task.id,
            "task",
            {"title": task.title, "projectId": task.project_id},
        )
    if reassigned and task.assigned_to not in (None, current_user.id):
        _notify_assignee(effects, task, "Task Assigned to You")
    await effects.run(db)
    return {"message": "Task updated successfully", "data": task}


@router.delete("/{task_id}", response_model=MessageResponse)
async def delete_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    effects: PostCommitEffects = Depends(get_effects),
) -> MessageResponse:
    """Remove a task along with its comments and time logs."""
    task = await db.get(Task, task_id)
    if task is None:
        raise NotFound("Task not found")
    access.ensure_can_delete_task(current_user, task)

    title = task.title
    await db.execute(delete(Comment).where(Comment.task_id == task_id))
    await db.execute(delete(TimeLog).where(TimeLog.task_id == task_id))
    await db.execute(delete(Task).where(Task.id == task_id))
    await db.commit()
    logger.info("Task %s deleted by user %s", task_id, current_user.id)

    effects.activity(audit.TASK_DELETED, current_user.id, task_id, "task", {"title": title})
    await effects.run(db)
    return MessageResponse(message="Task deleted successfully")
