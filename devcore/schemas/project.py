"""Pydantic schemas for Projects and their members."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field, field_validator

from devcore.schemas.common import CamelModel, TaskBrief, UserBrief
from devcore.schemas.user import ActivityLogRead

ProjectStatus = Literal["PENDING", "IN_PROGRESS", "REVIEW", "COMPLETED", "CANCELLED"]
Priority = Literal["LOW", "MEDIUM", "HIGH", "URGENT"]


class ProjectCreate(CamelModel):
    name: str
    description: str | None = None
    client_id: int
    status: ProjectStatus = "PENDING"
    priority: Priority = "MEDIUM"
    budget: float | None = Field(default=None, ge=0)
    start_date: datetime | None = None
    end_date: datetime | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Project name is required")
        if len(v) > 200:
            raise ValueError("Project name must not exceed 200 characters")
        return v


class ClientProjectCreate(CamelModel):
    """A client requesting a project for themselves."""

    name: str
    description: str | None = None
    budget: float | None = Field(default=None, ge=0)
    start_date: datetime | None = None
    end_date: datetime | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Project name is required")
        return v


class ProjectUpdate(CamelModel):
    name: str | None = None
    description: str | None = None
    status: ProjectStatus | None = None
    priority: Priority | None = None
    budget: float | None = Field(default=None, ge=0)
    start_date: datetime | None = None
    end_date: datetime | None = None


class ProjectStatusUpdate(CamelModel):
    status: ProjectStatus


class MemberAdd(CamelModel):
    user_id: int
    role: str = "Developer"


class MemberRead(CamelModel):
    id: int | None = None
    user_id: int
    role: str
    joined_at: datetime | None = None
    user: UserBrief | None = None


class ProjectRead(CamelModel):
    id: int
    name: str
    description: str | None = None
    client_id: int
    client: UserBrief | None = None
    status: str
    priority: str
    budget: float | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    members: list[MemberRead] = []
    task_count: int | None = None
    completed_task_count: int | None = None


class ProjectDetail(ProjectRead):
    tasks: list[TaskBrief] = []
    recent_activity: list[ActivityLogRead] = []


class ProjectStats(CamelModel):
    total: int
    by_status: dict[str, int]
    total_budget: float
