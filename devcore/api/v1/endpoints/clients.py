"""
Client portal (``/clients/me/...``) and client management for admins.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from devcore.api.v1.deps import get_db, get_effects, require_roles
from devcore.api.v1.endpoints.projects import project_detail, with_counts
from devcore.core.exceptions import NotFound, ValidationFailed
from devcore.core.permissions import (Action, Role, authorize,
                                      default_permissions, evaluate)
from devcore.db.base import utcnow
from devcore.models.project import Project, ProjectMember
from devcore.models.task import Comment, Task, TimeLog
from devcore.models.user import User
from devcore.schemas.client import (ClientDetail, ClientStats, ClientSummary,
                                    ProjectTimeLogRead)
from devcore.schemas.common import Envelope
from devcore.schemas.project import (ClientProjectCreate, ProjectDetail,
                                     ProjectRead)
from devcore.schemas.task import CommentCreate, CommentRead, TimeLogCreate
from devcore.schemas.user import RoleChange, UserRead
from devcore.services import audit
from devcore.services.audit import PostCommitEffects
from devcore.services.queries import (get_project_or_404, get_user_or_404,
                                      paginate, project_party_ids,
                                      recompute_actual_hours)

router = APIRouter(prefix="/clients", tags=["clients"])
logger = logging.getLogger(__name__)

GENERAL_TASK_TITLE = "General Project Work"

portal_user = require_roles(Role.CLIENT, Role.ADMIN, Role.DEVELOPER)
admin_user = require_roles(Role.SUPER_ADMIN, Role.ADMIN)


async def _party_project(db: AsyncSession, project_id: int, user: User) -> Project:
    """Project visible through the portal: the caller must own it or be a member."""
    try:
        project = await get_project_or_404(db, project_id)
    except NotFound:
        raise NotFound("Project not found or access denied") from None
    if not evaluate(user, Action(owner_ids=project_party_ids(project))):
        raise NotFound("Project not found or access denied")
    return project


# ── Portal ──────────────────────────────────────────────────────────
@router.get("/me/projects", response_model=Envelope[list[ProjectRead]])
async def my_portal_projects(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(portal_user),
) -> dict:
    member_of = select(ProjectMember.project_id).where(ProjectMember.user_id == current_user.id)
    result = await db.execute(
        select(Project)
        .where(or_(Project.client_id == current_user.id, Project.id.in_(member_of)))
        .order_by(Project.created_at.desc())
    )
    return {"data": await with_counts(db, list(result.scalars().all()))}


@router.post("/me/projects", response_model=Envelope[ProjectRead], status_code=201)
async def request_project(
    body: ClientProjectCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(Role.CLIENT)),
    effects: PostCommitEffects = Depends(get_effects),
) -> dict:
    """A client opens a new project for themselves; it starts as PENDING."""
    project = Project(client_id=current_user.id, status="PENDING", **body.model_dump())
    db.add(project)
    await db.commit()
    project = await get_project_or_404(db, project.id)

    effects.activity(
        audit.PROJECT_CREATED,
        current_user.id,
        project.id,
        "project",
        {"projectName": project.name, "requestedByClient": True},
    )
    await effects.run(db)
    return {"message": "Project created successfully", "data": project}


@router.get("/me/stats", response_model=Envelope[ClientStats])
async def my_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(Role.CLIENT)),
) -> dict:
    projects = (
        await db.execute(select(Project).where(Project.client_id == current_user.id))
    ).scalars().all()
    ids = [p.id for p in projects]
    task_rows = (
        (await db.execute(select(Task.status).where(Task.project_id.in_(ids)))).scalars().all()
        if ids
        else []
    )
    return {
        "data": {
            "total_projects": len(projects),
            "active_projects": sum(1 for p in projects if p.status == "IN_PROGRESS"),
            "completed_projects": sum(1 for p in projects if p.status == "COMPLETED"),
            "pending_projects": sum(1 for p in projects if p.status == "PENDING"),
            "total_budget": float(sum(p.budget or 0 for p in projects)),
            "total_tasks": len(task_rows),
            "completed_tasks": sum(1 for s in task_rows if s == "DONE"),
        }
    }


@router.get("/me/projects/{project_id}", response_model=Envelope[ProjectDetail])
async def my_project_detail(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(portal_user),
) -> dict:
    project = await _party_project(db, project_id, current_user)
    return {"data": await project_detail(db, project)}


@router.get("/me/projects/{project_id}/comments", response_model=Envelope[list[CommentRead]])
async def project_comments(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(portal_user),
) -> dict:
    await _party_project(db, project_id, current_user)
    result = await db.execute(
        select(Comment)
        .where(Comment.project_id == project_id, Comment.task_id.is_(None))
        .order_by(Comment.created_at.desc(), Comment.id.desc())
    )
    return {"data": result.scalars().all()}


@router.post(
    "/me/projects/{project_id}/comments",
    response_model=Envelope[CommentRead],
    status_code=201,
)
async def add_project_comment(
    project_id: int,
    body: CommentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(portal_user),
    effects: PostCommitEffects = Depends(get_effects),
) -> dict:
    project = await _party_project(db, project_id, current_user)
    comment = Comment(project_id=project.id, user_id=current_user.id, content=body.content)
    db.add(comment)
    await db.commit()
    await db.refresh(comment, attribute_names=["user"])

    effects.activity(
        audit.COMMENT_ADDED,
        current_user.id,
        project.id,
        "project",
        {"action": "comment_added", "commentId": comment.id, "projectName": project.name},
    )
    await effects.run(db)
    return {"message": "Comment added successfully", "data": comment}


@router.get(
    "/me/projects/{project_id}/time-logs",
    response_model=Envelope[list[ProjectTimeLogRead]],
)
async def project_time_logs(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(portal_user),
) -> dict:
    await _party_project(db, project_id, current_user)
    rows = await db.execute(
        select(TimeLog, Task.title)
        .join(Task, TimeLog.task_id == Task.id)
        .where(Task.project_id == project_id)
        .order_by(TimeLog.date.desc(), TimeLog.id.desc())
    )
    return {
        "data": [
            {
                "id": log.id,
                "task_id": log.task_id,
                "task_title": title,
                "user_id": log.user_id,
                "user_name": log.user.full_name if log.user else "",
                "hours": log.hours,
                "description": log.description,
                "date": log.date,
            }
            for log, title in rows.all()
        ]
    }


@router.post(
    "/me/projects/{project_id}/time-logs",
    response_model=Envelope[ProjectTimeLogRead],
    status_code=201,
)
async def add_project_time_log(
    project_id: int,
    body: TimeLogCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(portal_user),
    effects: PostCommitEffects = Depends(get_effects),
) -> dict:
    """Log hours against the project itself (a shared "General Project Work" task)."""
    if not body.description:
        raise ValidationFailed("Hours and description are required")
    project = await _party_project(db, project_id, current_user)

    task = await db.scalar(
        select(Task).where(Task.project_id == project.id, Task.title == GENERAL_TASK_TITLE)
    )
    if task is None:
        task = Task(
            project_id=project.id,
            title=GENERAL_TASK_TITLE,
            description="General project activities and discussions",
            created_by=current_user.id,
            status="DONE",
        )
        db.add(task)
        await db.flush()

    log = TimeLog(
        task_id=task.id,
        user_id=current_user.id,
        hours=body.hours,
        description=body.description,
        date=body.date or utcnow(),
    )
    db.add(log)
    await recompute_actual_hours(db, task)
    await db.commit()

    effects.activity(
        audit.TIME_LOGGED,
        current_user.id,
        project.id,
        "project",
        {"action": "time_logged", "hours": body.hours, "projectName": project.name},
    )
    await effects.run(db)
    return {
        "message": "Time logged successfully",
        "data": {
            "id": log.id,
            "task_id": task.id,
            "task_title": task.title,
            "user_id": current_user.id,
            "user_name": current_user.full_name,
            "hours": log.hours,
            "description": log.description,
            "date": log.date,
        },
    }


# ── Client management (admin) ───────────────────────────────────────
@router.get("", response_model=Envelope[list[ClientSummary]])
async def list_clients(
    search: str | None = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(admin_user),
) -> dict:
    stmt = select(User).where(User.role == Role.CLIENT.value).order_by(User.created_at.desc())
    if search:
        pattern = f"%{search.strip().lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(User.first_name).like(pattern),
                func.lower(User.email).like(pattern),
                func.lower(User.company_name).like(pattern),
            )
        )
    clients, pagination = await paginate(db, stmt, page, limit)
    counts: dict[int, int] = {}
    if clients:
        rows = await db.execute(
            select(Project.client_id, func.count())
            .where(Project.client_id.in_([c.id for c in clients]))
            .group_by(Project.client_id)
        )
        counts = dict(rows.all())
    data = []
    for client in clients:
        row = ClientSummary.model_validate(client).model_dump()
        row["project_count"] = counts.get(client.id, 0)
        data.append(row)
    return {"data": data, "pagination": pagination}


@router.get("/{client_id}", response_model=Envelope[ClientDetail])
async def client_detail(
    client_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(admin_user),
) -> dict:
    client = await get_user_or_404(db, client_id)
    if client.role != Role.CLIENT.value:
        raise NotFound("Client not found")
    projects = (
        await db.execute(
            select(Project).where(Project.client_id == client.id).order_by(Project.created_at.desc())
        )
    ).scalars().all()
    data = ClientSummary.model_validate(client).model_dump()
    data["project_count"] = len(projects)
    data["projects"] = projects
    return {"data": data}


@router.patch("/{client_id}/role", response_model=Envelope[UserRead])
async def change_client_role(
    client_id: int,
    body: RoleChange,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(admin_user),
    effects: PostCommitEffects = Depends(get_effects),
) -> dict:
    """Promote a client; granting SUPER_ADMIN is reserved to super admins."""
    client = await get_user_or_404(db, client_id)
    if client.role != Role.CLIENT.value:
        raise NotFound("Client not found")
    if body.role is Role.SUPER_ADMIN:
        authorize(
            current_user,
            Action(super_admin_only=True),
            "Only a Super Admin can grant the Super Admin role",
        )
    if body.role is Role.CLIENT:
        raise ValidationFailed("User is already a client")

    old_role = client.role
    client.role = body.role.value
    for field, value in default_permissions(body.role).items():
        setattr(client, field, value)
    client.is_approved = True
    client.approved_at = utcnow()
    client.approved_by = current_user.id
    await db.commit()
    await db.refresh(client)

    effects.activity(
        audit.USER_UPDATED,
        current_user.id,
        client.id,
        "user",
        {"action": "ROLE_CHANGED", "oldRole": old_role, "newRole": client.role},
    )
    effects.notify(
        client.id,
        "Role Updated",
        f"Your role has been changed to {client.role}.",
        "role_change",
    )
    await effects.run(db)
    return {"message": "Client role updated successfully", "data": client}
