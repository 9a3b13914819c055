"""
InviteCode model: single-use token binding a role to a future signup.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String

from devcore.db.base import Base, utcnow


class InviteCode(Base):
    __tablename__ = "invite_codes"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    code: str = Column(String(32), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    role: str = Column(String(20), nullable=False)  # type: ignore[assignment]
    used: bool = Column(Boolean, default=False, server_default="false", nullable=False)  # type: ignore[assignment]
    used_by: str | None = Column(String(320), nullable=True)  # type: ignore[assignment]  # redeemer email
    used_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    created_by: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    expires_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(DateTime(timezone=True), default=utcnow)  # type: ignore[assignment]
