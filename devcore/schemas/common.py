"""Shared schema plumbing: camelCase base model and the response envelope."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "from_attributes": True,
    }


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, total_pages=-(-total // limit) if limit else 0)


class Envelope(CamelModel, Generic[T]):
    success: bool = True
    message: str | None = None
    data: T | None = None
    pagination: Pagination | None = None


class MessageResponse(CamelModel):
    success: bool = True
    message: str


class UserBrief(CamelModel):
    id: int
    email: str
    first_name: str
    last_name: str | None = None
    role: str


class ProjectBrief(CamelModel):
    id: int
    name: str
    status: str


class TaskBrief(CamelModel):
    id: int
    title: str
    status: str
    priority: str
    project_id: int
