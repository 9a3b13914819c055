"""
Notification model: per-user inbox entry.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text

from devcore.db.base import Base, utcnow


class Notification(Base):
    __tablename__ = "notifications"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)  # type: ignore[assignment]
    title: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    message: str = Column(Text, nullable=False)  # type: ignore[assignment]
    type: str = Column(String(50), nullable=False, default="info")  # type: ignore[assignment]
    link: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    is_read: bool = Column(Boolean, default=False, server_default="false", nullable=False)  # type: ignore[assignment]
    created_at: datetime = Column(DateTime(timezone=True), default=utcnow, index=True)  # type: ignore[assignment]
