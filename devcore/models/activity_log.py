"""
ActivityLog model: append-only audit trail.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from devcore.db.base import Base, utcnow


class ActivityLog(Base):
    __tablename__ = "activity_logs"
    __table_args__ = (Index("ix_activity_target", "target_type", "target_id"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    type: str = Column(String(50), nullable=False, index=True)  # type: ignore[assignment]
    performed_by_id: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("users.id"), nullable=True, index=True
    )
    target_id: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    target_type: str | None = Column(String(30), nullable=True)  # type: ignore[assignment]
    details: dict | None = Column(JSON, nullable=True)  # type: ignore[assignment]
    ip_address: str | None = Column(String(64), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(DateTime(timezone=True), default=utcnow, index=True)  # type: ignore[assignment]

    performed_by = relationship("User", lazy="selectin")
