"""Pydantic schemas for Notifications."""

from __future__ import annotations

from datetime import datetime

from devcore.schemas.common import CamelModel


class NotificationRead(CamelModel):
    id: int
    title: str
    message: str
    type: str
    link: str | None = None
    is_read: bool
    created_at: datetime | None = None
