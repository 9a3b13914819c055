"""Pydantic schemas for the client portal and client management."""

from __future__ import annotations

from datetime import datetime

from devcore.schemas.common import CamelModel, ProjectBrief


class ClientStats(CamelModel):
    total_projects: int
    active_projects: int
    completed_projects: int
    pending_projects: int
    total_budget: float
    total_tasks: int
    completed_tasks: int


class ClientSummary(CamelModel):
    id: int
    email: str
    first_name: str
    last_name: str | None = None
    phone: str | None = None
    company_name: str | None = None
    industry: str | None = None
    is_active: bool
    created_at: datetime | None = None
    project_count: int = 0


class ClientDetail(ClientSummary):
    projects: list[ProjectBrief] = []


class ProjectTimeLogRead(CamelModel):
    id: int
    task_id: int
    task_title: str
    user_id: int
    user_name: str
    hours: float
    description: str | None = None
    date: datetime | None = None
