"""Pydantic schemas for User profiles and administration."""

from __future__ import annotations

from datetime import datetime

from pydantic import field_validator

from devcore.core.permissions import Role
from devcore.schemas.common import CamelModel, ProjectBrief, TaskBrief, UserBrief


class UserRead(CamelModel):
    id: int
    email: str
    first_name: str
    last_name: str | None = None
    phone: str | None = None
    role: str
    company_name: str | None = None
    industry: str | None = None
    position: str | None = None
    skills: list[str] | None = None
    experience: str | None = None
    github_username: str | None = None
    portfolio: str | None = None
    bio: str | None = None
    is_active: bool
    is_approved: bool | None
    approved_at: datetime | None = None
    rejection_reason: str | None = None
    can_approve_users: bool = False
    can_delete_users: bool = False
    can_manage_projects: bool = False
    can_assign_tasks: bool = False
    can_view_all_projects: bool = False
    last_login: datetime | None = None
    created_at: datetime | None = None


class UserDetail(UserRead):
    assigned_tasks: list[TaskBrief] = []
    owned_projects: list[ProjectBrief] = []


class UserSelfUpdate(CamelModel):
    """Self-service profile edit. Role, approval and permission fields are not accepted."""

    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    company_name: str | None = None
    industry: str | None = None
    position: str | None = None
    skills: list[str] | None = None
    experience: str | None = None
    github_username: str | None = None
    portfolio: str | None = None
    bio: str | None = None

    @field_validator("first_name")
    @classmethod
    def _first_name(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("First name must not be empty")
        return v.strip() if v else v


class PasswordChange(CamelModel):
    current_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def _password(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        return v


class AdminUserUpdate(CamelModel):
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    position: str | None = None
    role: Role | None = None
    is_active: bool | None = None
    can_approve_users: bool | None = None
    can_delete_users: bool | None = None
    can_manage_projects: bool | None = None
    can_assign_tasks: bool | None = None
    can_view_all_projects: bool | None = None


class RoleChange(CamelModel):
    role: Role


class RejectRequest(CamelModel):
    reason: str

    @field_validator("reason")
    @classmethod
    def _reason(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Rejection reason is required")
        return v


class AdminStats(CamelModel):
    total_users: int
    active_users: int
    pending_approvals: int
    total_projects: int
    total_tasks: int
    admin_count: int
    developer_count: int
    client_count: int


class ActivityLogRead(CamelModel):
    id: int
    type: str
    performed_by_id: int | None
    performed_by: UserBrief | None = None
    target_id: int | None
    target_type: str | None
    details: dict | None
    ip_address: str | None = None
    created_at: datetime

