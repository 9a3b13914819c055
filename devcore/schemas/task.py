"""Pydantic schemas for Tasks, TimeLogs and Comments."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field, field_validator

from devcore.schemas.common import CamelModel, ProjectBrief, UserBrief

TaskStatus = Literal["TODO", "IN_PROGRESS", "REVIEW", "DONE"]
TaskPriority = Literal["LOW", "MEDIUM", "HIGH", "URGENT"]


class TaskCreate(CamelModel):
    title: str
    description: str | None = None
    project_id: int
    assigned_to: int | None = None
    priority: TaskPriority = "MEDIUM"
    due_date: datetime | None = None
    estimated_hours: float | None = Field(default=None, ge=0)

    @field_validator("title")
    @classmethod
    def _title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Task title is required")
        return v


class TaskUpdate(CamelModel):
    title: str | None = None
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    assigned_to: int | None = None
    due_date: datetime | None = None
    estimated_hours: float | None = Field(default=None, ge=0)


class TaskAssign(CamelModel):
    assigned_to: int | None


class TaskStatusUpdate(CamelModel):
    status: TaskStatus


class TaskRead(CamelModel):
    id: int
    project_id: int
    project: ProjectBrief | None = None
    title: str
    description: str | None = None
    status: str
    priority: str
    assigned_to: int | None = None
    assignee: UserBrief | None = None
    created_by: int
    creator: UserBrief | None = None
    due_date: datetime | None = None
    estimated_hours: float | None = None
    actual_hours: float = 0.0
    completed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TimeLogCreate(CamelModel):
    hours: float = Field(gt=0, le=24)
    description: str | None = None
    date: datetime | None = None


class TimeLogRead(CamelModel):
    id: int
    task_id: int
    user_id: int
    user: UserBrief | None = None
    hours: float
    description: str | None = None
    date: datetime | None = None
    created_at: datetime | None = None


class CommentCreate(CamelModel):
    content: str

    @field_validator("content")
    @classmethod
    def _content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Comment content is required")
        return v


class CommentRead(CamelModel):
    id: int
    project_id: int | None = None
    task_id: int | None = None
    user_id: int
    user: UserBrief | None = None
    content: str
    created_at: datetime | None = None


class DeveloperWorkload(UserBrief):
    active_tasks: int = 0


class DeveloperStats(CamelModel):
    total_tasks: int
    completed_tasks: int
    in_progress_tasks: int
    projects: int
