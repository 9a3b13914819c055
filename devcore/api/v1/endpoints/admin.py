"""
Admin console: user approval, user management, activity log, overview stats.
"""

from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from devcore.api.v1.deps import (get_db, get_effects, require_fresh_token,
                                 require_permission, require_roles,
                                 require_super_admin)
from devcore.core.config import settings
from devcore.core.exceptions import Conflict, ValidationFailed
from devcore.core.permissions import Action, Permission, Role, authorize
from devcore.db.base import utcnow
from devcore.models.activity_log import ActivityLog
from devcore.models.invite_code import InviteCode
from devcore.models.notification import Notification
from devcore.models.password_reset import PasswordReset
from devcore.models.project import Project, ProjectMember
from devcore.models.task import Comment, Task, TimeLog
from devcore.models.user import User
from devcore.schemas.common import Envelope, MessageResponse
from devcore.schemas.task import TaskRead
from devcore.schemas.user import (ActivityLogRead, AdminStats, AdminUserUpdate,
                                  RejectRequest, UserDetail, UserRead)
from devcore.services import audit
from devcore.services.audit import PostCommitEffects
from devcore.services.mailer import queue_email
from devcore.services.queries import get_user_or_404, paginate

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger(__name__)

require_admin = require_roles(Role.SUPER_ADMIN, Role.ADMIN)
_PENDING_ROLES = (Role.DEVELOPER.value, Role.ADMIN.value, Role.SUPER_ADMIN.value)
_SUPER_ADMIN_ONLY = Action(super_admin_only=True)
_PERMISSION_FIELDS = {p.value for p in Permission}
_NULLABLE_FIELDS = {"last_name", "phone", "position"}


def _pending_filter():
    return (
        User.role.in_(_PENDING_ROLES),
        or_(User.is_approved.is_(None), User.is_approved.is_(False)),
    )


# ── Overview ────────────────────────────────────────────────────────
@router.get("/stats", response_model=Envelope[AdminStats])
async def admin_stats(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> dict:
    role_counts = dict(
        (await db.execute(select(User.role, func.count()).group_by(User.role))).all()
    )
    pending = await db.scalar(select(func.count()).select_from(User).where(*_pending_filter()))
    return {
        "data": {
            "total_users": sum(role_counts.values()),
            "active_users": await db.scalar(
                select(func.count()).select_from(User).where(User.is_active.is_(True))
            ),
            "pending_approvals": pending or 0,
            "total_projects": await db.scalar(select(func.count()).select_from(Project)),
            "total_tasks": await db.scalar(select(func.count()).select_from(Task)),
            "admin_count": role_counts.get(Role.ADMIN.value, 0),
            "developer_count": role_counts.get(Role.DEVELOPER.value, 0),
            "client_count": role_counts.get(Role.CLIENT.value, 0),
        }
    }


# ── Users ───────────────────────────────────────────────────────────
@router.get("/users/pending", response_model=Envelope[list[UserRead]])
async def pending_users(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> dict:
    """Staff applications awaiting review (never reviewed, or previously rejected)."""
    result = await db.execute(
        select(User).where(*_pending_filter()).order_by(User.created_at.desc())
    )
    return {"data": result.scalars().all()}


@router.get("/users", response_model=Envelope[list[UserRead]])
async def list_users(
    role: Role | None = None,
    status: Literal["active", "inactive", "pending", "approved", "rejected"] | None = None,
    search: str | None = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> dict:
    stmt = select(User).order_by(User.created_at.desc(), User.id.desc())
    if role is not None:
        stmt = stmt.where(User.role == role.value)
    if status == "active":
        stmt = stmt.where(User.is_active.is_(True))
    elif status == "inactive":
        stmt = stmt.where(User.is_active.is_(False))
    elif status == "pending":
        stmt = stmt.where(User.is_approved.is_(None))
    elif status == "approved":
        stmt = stmt.where(User.is_approved.is_(True))
    elif status == "rejected":
        stmt = stmt.where(User.is_approved.is_(False))
    if search:
        pattern = f"%{search.strip().lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(User.first_name).like(pattern),
                func.lower(User.last_name).like(pattern),
                func.lower(User.email).like(pattern),
            )
        )
    users, pagination = await paginate(db, stmt, page, limit)
    return {"data": users, "pagination": pagination}


@router.get("/users/{user_id}", response_model=Envelope[UserDetail])
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> dict:
    user = await get_user_or_404(db, user_id)
    tasks = await db.execute(
        select(Task).where(Task.assigned_to == user.id).order_by(Task.created_at.desc())
    )
    projects = await db.execute(
        select(Project).where(Project.client_id == user.id).order_by(Project.created_at.desc())
    )
    detail = UserRead.model_validate(user).model_dump()
    detail["assigned_tasks"] = tasks.scalars().all()
    detail["owned_projects"] = projects.scalars().all()
    return {"data": detail}


@router.patch("/users/{user_id}", response_model=Envelope[UserRead])
async def update_user(
    user_id: int,
    body: AdminUserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
    effects: PostCommitEffects = Depends(get_effects),
) -> dict:
    """Admins edit profile and active state; role and permission grants are super-admin only."""
    user = await get_user_or_404(db, user_id)
    changes = body.model_dump(exclude_unset=True)

    if user.role == Role.SUPER_ADMIN.value:
        authorize(current_user, _SUPER_ADMIN_ONLY, "Only a Super Admin can modify a Super Admin account")
    if "role" in changes or _PERMISSION_FIELDS & changes.keys():
        authorize(current_user, _SUPER_ADMIN_ONLY, "Only a Super Admin can change roles or permissions")
    if user.id == current_user.id and changes.get("is_active") is False:
        raise ValidationFailed("You cannot deactivate your own account")

    if "role" in changes and changes["role"] is not None:
        changes["role"] = changes["role"].value
    for field, value in changes.items():
        if value is None and field not in _NULLABLE_FIELDS:
            continue
        setattr(user, field, value)
    await db.commit()
    await db.refresh(user)

    effects.activity(
        audit.USER_UPDATED,
        current_user.id,
        user.id,
        "user",
        {"fields": sorted(changes)},
    )
    await effects.run(db)
    return {"message": "User updated successfully", "data": user}


@router.patch("/users/{user_id}/approve", response_model=Envelope[UserRead])
async def approve_user(
    user_id: int,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.APPROVE_USERS)),
    effects: PostCommitEffects = Depends(get_effects),
) -> dict:
    user = await get_user_or_404(db, user_id)
    if user.role == Role.SUPER_ADMIN.value:
        authorize(current_user, _SUPER_ADMIN_ONLY, "Only a Super Admin can approve a Super Admin")
    if user.is_approved is True:
        raise ValidationFailed("User is already approved")

    user.is_approved = True
    user.is_active = True
    user.approved_at = utcnow()
    user.approved_by = current_user.id
    user.rejection_reason = None
    await db.commit()
    await db.refresh(user)
    logger.info("User %s approved by %s", user.id, current_user.id)

    effects.notify(
        user.id,
        "Account Approved",
        "Your account has been approved. You can now log in.",
        "approval",
        "/login",
    )
    effects.activity(
        audit.USER_APPROVED,
        current_user.id,
        user.id,
        "user",
        {"email": user.email, "role": user.role},
    )
    await effects.run(db)
    queue_email(
        background_tasks,
        user.email,
        "approval",
        first_name=user.first_name,
        role=user.role,
        login_url=f"{settings.FRONTEND_URL}/login",
    )
    return {"message": "User approved successfully", "data": user}


@router.patch("/users/{user_id}/reject", response_model=Envelope[UserRead])
async def reject_user(
    user_id: int,
    body: RejectRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.APPROVE_USERS)),
    effects: PostCommitEffects = Depends(get_effects),
) -> dict:
    user = await get_user_or_404(db, user_id)
    if user.role == Role.SUPER_ADMIN.value:
        authorize(current_user, _SUPER_ADMIN_ONLY, "Only a Super Admin can reject a Super Admin")
    if user.is_approved is False:
        raise ValidationFailed("User is already rejected")

    user.is_approved = False
    user.rejection_reason = body.reason
    await db.commit()
    await db.refresh(user)

    effects.notify(
        user.id,
        "Application Rejected",
        f"Your application was not approved. Reason: {body.reason}",
        "rejection",
    )
    effects.activity(
        audit.USER_UPDATED,
        current_user.id,
        user.id,
        "user",
        {"action": audit.USER_REJECTED, "reason": body.reason},
    )
    await effects.run(db)
    queue_email(
        background_tasks,
        user.email,
        "rejection",
        first_name=user.first_name,
        reason=body.reason,
    )
    return {"message": "User rejected", "data": user}


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.DELETE_USERS)),
    _fresh: User = Depends(require_fresh_token),
    effects: PostCommitEffects = Depends(get_effects),
) -> MessageResponse:
    """Hard-delete a user with no business records; detach everything else atomically."""
    if user_id == current_user.id:
        raise ValidationFailed("You cannot delete your own account")
    user = await get_user_or_404(db, user_id)
    if user.role == Role.SUPER_ADMIN.value:
        authorize(current_user, _SUPER_ADMIN_ONLY, "Only a Super Admin can delete a Super Admin")

    owned = await db.scalar(select(func.count()).select_from(Project).where(Project.client_id == user.id))
    created = await db.scalar(select(func.count()).select_from(Task).where(Task.created_by == user.id))
    logged = await db.scalar(select(func.count()).select_from(TimeLog).where(TimeLog.user_id == user.id))
    if owned or created or logged:
        raise Conflict(
            "Cannot delete user with existing projects, created tasks or time logs. "
            "Deactivate the account instead.",
            projects=owned or 0,
            tasks=created or 0,
            timeLogs=logged or 0,
        )

    email, role = user.email, user.role
    await db.execute(delete(ProjectMember).where(ProjectMember.user_id == user.id))
    await db.execute(update(Task).where(Task.assigned_to == user.id).values(assigned_to=None))
    await db.execute(
        update(InviteCode).where(InviteCode.created_by == user.id).values(created_by=None)
    )
    await db.execute(delete(Notification).where(Notification.user_id == user.id))
    await db.execute(delete(PasswordReset).where(PasswordReset.user_id == user.id))
    await db.execute(delete(Comment).where(Comment.user_id == user.id))
    await db.execute(delete(ActivityLog).where(ActivityLog.performed_by_id == user.id))
    await db.delete(user)
    await db.commit()
    logger.info("User %s deleted by %s", user_id, current_user.id)

    effects.activity(
        audit.USER_DELETED,
        current_user.id,
        user_id,
        "user",
        {"email": email, "role": role},
    )
    await effects.run(db)
    return MessageResponse(message="User successfully deleted")


# ── Activity log ────────────────────────────────────────────────────
@router.get("/activity-logs", response_model=Envelope[list[ActivityLogRead]])
async def activity_logs(
    limit: int = Query(default=50, ge=1, le=100),
    type: str | None = Query(default=None, max_length=50),
    db: AsyncSession = Depends(get_db),
    _sa: User = Depends(require_super_admin),
) -> dict:
    stmt = select(ActivityLog).order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit)
    if type:
        stmt = stmt.where(ActivityLog.type == type)
    result = await db.execute(stmt)
    return {"data": result.scalars().all()}


# ── Tasks overview ──────────────────────────────────────────────────
@router.get("/tasks", response_model=Envelope[list[TaskRead]])
async def all_tasks(
    status: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> dict:
    stmt = select(Task).order_by(Task.created_at.desc(), Task.id.desc())
    if status:
        stmt = stmt.where(Task.status == status)
    tasks, pagination = await paginate(db, stmt, page, limit)
    return {"data": tasks, "pagination": pagination}
