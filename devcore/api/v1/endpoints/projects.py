"""
Project endpoints: CRUD, status workflow and membership.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from devcore.api.v1.deps import (get_current_active_user, get_db, get_effects,
                                 require_permission, require_roles,
                                 require_super_admin)
from devcore.core.exceptions import Conflict, NotFound, ValidationFailed
from devcore.core.permissions import Permission, Role
from devcore.models.activity_log import ActivityLog
from devcore.models.project import Project, ProjectMember
from devcore.models.task import Comment, Task
from devcore.models.user import User
from devcore.schemas.common import Envelope, MessageResponse
from devcore.schemas.project import (MemberAdd, MemberRead, ProjectCreate,
                                     ProjectDetail, ProjectRead, ProjectStats,
                                     ProjectStatusUpdate, ProjectUpdate)
from devcore.services import access, audit
from devcore.services.audit import PostCommitEffects
from devcore.services.queries import (get_project_or_404, get_user_or_404,
                                      paginate)

router = APIRouter(prefix="/projects", tags=["projects"])
logger = logging.getLogger(__name__)

PROJECT_STATUSES = ("PENDING", "IN_PROGRESS", "REVIEW", "COMPLETED", "CANCELLED")


# ── Helpers ─────────────────────────────────────────────────────────
async def task_counts(db: AsyncSession, project_ids: list[int]) -> dict[int, tuple[int, int]]:
    """project id -> (total tasks, DONE tasks), one grouped query."""
    if not project_ids:
        return {}
    rows = await db.execute(
        select(Task.project_id, Task.status, func.count())
        .where(Task.project_id.in_(project_ids))
        .group_by(Task.project_id, Task.status)
    )
    counts: dict[int, list[int]] = {}
    for project_id, status, n in rows.all():
        entry = counts.setdefault(project_id, [0, 0])
        entry[0] += n
        if status == "DONE":
            entry[1] += n
    return {pid: (total, finished) for pid, (total, finished) in counts.items()}


async def with_counts(db: AsyncSession, projects: list[Project]) -> list[dict]:
    counts = await task_counts(db, [p.id for p in projects])
    payload = []
    for project in projects:
        data = ProjectRead.model_validate(project).model_dump()
        data["task_count"], data["completed_task_count"] = counts.get(project.id, (0, 0))
        payload.append(data)
    return payload


async def project_detail(db: AsyncSession, project: Project) -> dict:
    tasks = (
        await db.execute(
            select(Task).where(Task.project_id == project.id).order_by(Task.created_at.desc())
        )
    ).scalars().all()
    task_ids = [t.id for t in tasks]
    conditions = [and_(ActivityLog.target_type == "project", ActivityLog.target_id == project.id)]
    if task_ids:
        conditions.append(and_(ActivityLog.target_type == "task", ActivityLog.target_id.in_(task_ids)))
    activity = (
        await db.execute(
            select(ActivityLog)
            .where(or_(*conditions))
            .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
            .limit(10)
        )
    ).scalars().all()

    data = ProjectRead.model_validate(project).model_dump()
    data["task_count"] = len(tasks)
    data["completed_task_count"] = sum(1 for t in tasks if t.status == "DONE")
    data["tasks"] = tasks
    data["recent_activity"] = activity
    return data


async def require_client(db: AsyncSession, client_id: int) -> User:
    client = await db.get(User, client_id)
    if client is None or client.role != Role.CLIENT.value:
        raise NotFound("Client not found or invalid")
    return client


# ── Listing ─────────────────────────────────────────────────────────
@router.get("/my-projects", response_model=Envelope[list[ProjectRead]])
async def my_projects(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(Role.CLIENT)),
) -> dict:
    result = await db.execute(
        select(Project)
        .where(Project.client_id == current_user.id)
        .order_by(Project.created_at.desc())
    )
    return {"data": await with_counts(db, list(result.scalars().all()))}


@router.get("/stats", response_model=Envelope[ProjectStats])
async def project_stats(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_roles(Role.SUPER_ADMIN, Role.ADMIN)),
) -> dict:
    rows = (await db.execute(select(Project.status, func.count()).group_by(Project.status))).all()
    by_status = {status: 0 for status in PROJECT_STATUSES}
    by_status.update({status: n for status, n in rows})
    total_budget = await db.scalar(select(func.coalesce(func.sum(Project.budget), 0.0)))
    return {
        "data": {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "total_budget": float(total_budget or 0),
        }
    }


@router.get("", response_model=Envelope[list[ProjectRead]])
async def list_projects(
    status: str | None = None,
    client_id: int | None = Query(default=None, alias="clientId"),
    search: str | None = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_roles(Role.SUPER_ADMIN, Role.ADMIN)),
) -> dict:
    stmt = select(Project).order_by(Project.created_at.desc(), Project.id.desc())
    if status:
        if status not in PROJECT_STATUSES:
            raise ValidationFailed("Invalid project status")
        stmt = stmt.where(Project.status == status)
    if client_id is not None:
        stmt = stmt.where(Project.client_id == client_id)
    if search:
        pattern = f"%{search.strip().lower()}%"
        stmt = stmt.where(
            or_(func.lower(Project.name).like(pattern), func.lower(Project.description).like(pattern))
        )
    projects, pagination = await paginate(db, stmt, page, limit)
    return {"data": await with_counts(db, projects), "pagination": pagination}


# ── CRUD ────────────────────────────────────────────────────────────
@router.post("", response_model=Envelope[ProjectRead], status_code=201)
async def create_project(
    body: ProjectCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(
        require_permission(Permission.MANAGE_PROJECTS, Role.ADMIN, Role.DEVELOPER)
    ),
    effects: PostCommitEffects = Depends(get_effects),
) -> dict:
    client = await require_client(db, body.client_id)
    project = Project(**body.model_dump())
    db.add(project)
    await db.commit()
    project = await get_project_or_404(db, project.id)
    logger.info("Project %s created by user %s", project.id, current_user.id)

    effects.activity(
        audit.PROJECT_CREATED,
        current_user.id,
        project.id,
        "project",
        {"projectName": project.name, "clientId": client.id},
    )
    effects.notify(
        client.id,
        "New Project Created",
        f'Project "{project.name}" has been created for you.',
        "project_update",
        f"/projects/{project.id}",
    )
    await effects.run(db)
    return {"message": "Project created successfully", "data": project}


@router.get("/{project_id}", response_model=Envelope[ProjectDetail])
async def get_project(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    project = await get_project_or_404(db, project_id)
    access.ensure_can_view_project(current_user, project)
    return {"data": await project_detail(db, project)}


@router.patch("/{project_id}", response_model=Envelope[ProjectRead])
async def update_project(
    project_id: int,
    body: ProjectUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    effects: PostCommitEffects = Depends(get_effects),
) -> dict:
    project = await get_project_or_404(db, project_id)
    access.ensure_can_edit_project(current_user, project)

    changes = body.model_dump(exclude_unset=True)
    for field in ("name", "status", "priority"):
        if field in changes and changes[field] is None:
            del changes[field]
    for field, value in changes.items():
        setattr(project, field, value)
    await db.commit()
    project = await get_project_or_404(db, project_id)

    effects.activity(
        audit.PROJECT_UPDATED, current_user.id, project.id, "project", {"updates": sorted(changes)}
    )
    await effects.run(db)
    return {"message": "Project updated successfully", "data": project}


@router.patch("/{project_id}/status", response_model=Envelope[ProjectRead])
async def update_project_status(
    project_id: int,
    body: ProjectStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    effects: PostCommitEffects = Depends(get_effects),
) -> dict:
    project = await get_project_or_404(db, project_id)
    access.ensure_can_edit_project(current_user, project)

    old_status = project.status
    project.status = body.status
    await db.commit()
    project = await get_project_or_404(db, project_id)

    effects.activity(
        audit.PROJECT_UPDATED,
        current_user.id,
        project.id,
        "project",
        {"oldStatus": old_status, "newStatus": body.status, "projectName": project.name},
    )
    if project.client_id != current_user.id:
        effects.notify(
            project.client_id,
            "Project Status Updated",
            f'Project "{project.name}" status changed to {body.status}.',
            "project_update",
            f"/projects/{project.id}",
        )
    await effects.run(db)
    return {"message": f"Project status updated to {body.status}", "data": project}


@router.delete("/{project_id}", response_model=MessageResponse)
async def delete_project(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_super_admin),
    effects: PostCommitEffects = Depends(get_effects),
) -> MessageResponse:
    """Delete an empty project; members, comments and its audit entries go with it."""
    project = await get_project_or_404(db, project_id)
    task_total = await db.scalar(
        select(func.count()).select_from(Task).where(Task.project_id == project.id)
    )
    if task_total:
        raise Conflict(
            f"Cannot delete project with {task_total} task(s). Delete tasks first.",
            taskCount=task_total,
        )

    name = project.name
    await db.execute(delete(ProjectMember).where(ProjectMember.project_id == project.id))
    await db.execute(delete(Comment).where(Comment.project_id == project.id))
    await db.execute(
        delete(ActivityLog).where(
            ActivityLog.target_type == "project", ActivityLog.target_id == project.id
        )
    )
    await db.execute(delete(Project).where(Project.id == project.id))
    await db.commit()
    logger.info("Project %s deleted by user %s", project_id, current_user.id)

    effects.activity(
        audit.PROJECT_DELETED, current_user.id, project_id, "project", {"projectName": name}
    )
    await effects.run(db)
    return MessageResponse(message="Project deleted successfully")


# ── Members ─────────────────────────────────────────────────────────
@router.get("/{project_id}/members", response_model=Envelope[list[MemberRead]])
async def list_members(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    """Members plus the owning client (reported with the project role ``Client``)."""
    project = await get_project_or_404(db, project_id)
    access.ensure_can_view_project(current_user, project)
    members: list[dict] = [
        {
            "id": None,
            "user_id": project.client_id,
            "role": "Client",
            "joined_at": project.created_at,
            "user": project.client,
        }
    ]
    members.extend(MemberRead.model_validate(m).model_dump() for m in project.members)
    return {"data": members}


@router.post("/{project_id}/members", response_model=Envelope[MemberRead], status_code=201)
async def add_member(
    project_id: int,
    body: MemberAdd,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    effects: PostCommitEffects = Depends(get_effects),
) -> dict:
    project = await get_project_or_404(db, project_id)
    access.ensure_can_manage_members(current_user, project)
    user = await get_user_or_404(db, body.user_id)
    if user.role == Role.CLIENT.value:
        raise ValidationFailed("Clients cannot be added as project members")
    if any(m.user_id == user.id for m in project.members):
        raise Conflict("User is already a member of this project")

    member = ProjectMember(project_id=project.id, user_id=user.id, role=body.role or "Developer")
    db.add(member)
    await db.commit()
    member_id = member.id
    member = (
        await db.execute(
            select(ProjectMember)
            .where(ProjectMember.id == member_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one()

    effects.activity(
        audit.PROJECT_UPDATED,
        current_user.id,
        project.id,
        "project",
        {"action": "MEMBER_ADDED", "userId": user.id, "role": member.role},
    )
    effects.notify(
        user.id,
        "Added to Project",
        f'You have been added to project "{project.name}" as {member.role}.',
        "project_update",
        f"/projects/{project.id}",
    )
    await effects.run(db)
    return {"message": "Member added successfully", "data": member}


@router.delete("/{project_id}/members/{user_id}", response_model=MessageResponse)
async def remove_member(
    project_id: int,
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    effects: PostCommitEffects = Depends(get_effects),
) -> MessageResponse:
    project = await get_project_or_404(db, project_id)
    access.ensure_can_manage_members(current_user, project)
    member = next((m for m in project.members if m.user_id == user_id), None)
    if member is None:
        raise NotFound("Member not found in this project")

    await db.execute(delete(ProjectMember).where(ProjectMember.id == member.id))
    await db.commit()

    effects.activity(
        audit.PROJECT_UPDATED,
        current_user.id,
        project.id,
        "project",
        {"action": "MEMBER_REMOVED", "userId": user_id},
    )
    await effects.run(db)
    return MessageResponse(message="Member removed successfully")
