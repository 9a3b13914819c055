"""Pydantic schemas for reporting, analytics and health."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel

from devcore.schemas.common import CamelModel, ProjectBrief

ReportRange = Literal["7d", "30d", "90d", "6m", "ytd", "all"]
ExportType = Literal["users", "projects", "tasks", "financial"]


class ReportStats(CamelModel):
    total_users: int
    active_users: int
    new_users: int
    total_projects: int
    active_projects: int
    completed_projects: int
    total_tasks: int
    completed_tasks: int
    pending_tasks: int
    total_revenue: float
    average_project_duration: int
    user_growth_rate: float
    project_completion_rate: float
    task_completion_rate: float


class PersonRef(CamelModel):
    id: int
    name: str
    email: str
    role: str | None = None


class UserReportRow(CamelModel):
    id: int
    name: str
    email: str
    role: str
    is_active: bool
    is_approved: bool
    created_at: datetime | None = None
    project_count: int
    task_count: int


class ProjectReportRow(CamelModel):
    id: int
    name: str
    description: str
    status: str
    priority: str
    progress: int
    budget: float
    start_date: datetime | None = None
    end_date: datetime | None = None
    client: PersonRef | None = None
    manager: PersonRef | None = None
    task_count: int
    member_count: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class FinancialMonth(CamelModel):
    month: str
    revenue: int
    expenses: int
    profit: int
    profit_margin: float
    project_count: int
    completed_projects: int
    ongoing_projects: int
    cancelled_projects: int
    completion_rate: float
    avg_project_cost: int


class FinancialTotals(CamelModel):
    revenue: int = 0
    expenses: int = 0
    profit: int = 0
    project_count: int = 0
    completed_projects: int = 0
    overall_profit_margin: float = 0.0
    overall_completion_rate: float = 0.0


class FinancialReport(CamelModel):
    months: list[FinancialMonth]
    totals: FinancialTotals


class TaskReportRow(CamelModel):
    id: int
    title: str
    description: str
    status: str
    priority: str
    project: ProjectBrief | None = None
    assigned_to: PersonRef | None = None
    created_by: PersonRef | None = None
    due_date: datetime | None = None
    is_overdue: bool
    estimated_hours: float
    actual_hours: float
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ActivityReportRow(CamelModel):
    id: int
    type: str
    title: str
    description: str
    timestamp: datetime | None = None
    user: PersonRef | None = None
    details: dict[str, Any]


class ExportRequest(CamelModel):
    type: ExportType
    format: Literal["json", "csv"] = "json"
    range: ReportRange = "all"


class ExportResult(CamelModel):
    type: str
    format: str
    file_name: str
    generated_at: datetime
    range: str
    records: int
    data: list[dict[str, Any]]


class HealthResponse(BaseModel):
    """Public liveness probe (plain keys, no envelope)."""

    status: str
    db: bool
    rate_limit_store: bool
