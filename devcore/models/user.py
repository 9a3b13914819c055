"""
User model: identity, role and per-user permission grants.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text

from devcore.db.base import Base, utcnow


class User(Base):
    __tablename__ = "users"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    email: str = Column(String(320), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    hashed_password: str = Column(String(128), nullable=False)  # type: ignore[assignment]
    first_name: str = Column(String(100), nullable=False)  # type: ignore[assignment]
    last_name: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    phone: str | None = Column(String(30), nullable=True)  # type: ignore[assignment]
    role: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default="CLIENT",
        server_default="CLIENT",
        index=True,
    )  # SUPER_ADMIN | ADMIN | DEVELOPER | CLIENT

    # Client profile
    company_name: str | None = Column(String(200), nullable=True)  # type: ignore[assignment]
    industry: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]

    # Staff profile
    position: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    skills: list | None = Column(JSON, nullable=True)  # type: ignore[assignment]
    experience: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    github_username: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    portfolio: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    bio: str | None = Column(Text, nullable=True)  # type: ignore[assignment]

    # Account state. is_approved is tri-state: None = pending review.
    is_active: bool = Column(Boolean, default=True, server_default="true")  # type: ignore[assignment]
    is_approved: bool | None = Column(Boolean, nullable=True)  # type: ignore[assignment]
    approved_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    approved_by: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    rejection_reason: str | None = Column(Text, nullable=True)  # type: ignore[assignment]

    # Permission grants (implicitly all true for SUPER_ADMIN)
    can_approve_users: bool = Column(Boolean, default=False, server_default="false")  # type: ignore[assignment]
    can_delete_users: bool = Column(Boolean, default=False, server_default="false")  # type: ignore[assignment]
    can_manage_projects: bool = Column(Boolean, default=False, server_default="false")  # type: ignore[assignment]
    can_assign_tasks: bool = Column(Boolean, default=False, server_default="false")  # type: ignore[assignment]
    can_view_all_projects: bool = Column(Boolean, default=False, server_default="false")  # type: ignore[assignment]

    last_login: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(DateTime(timezone=True), default=utcnow)  # type: ignore[assignment]
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)
