"""
Project & ProjectMember models.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (Column, DateTime, Float, ForeignKey, Integer, String,
                        Text, UniqueConstraint)
from sqlalchemy.orm import relationship

from devcore.db.base import Base, utcnow


class Project(Base):
    __tablename__ = "projects"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    description: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    client_id: int = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)  # type: ignore[assignment]
    status: str = Column(  # type: ignore[assignment]
        String(20), nullable=False, default="PENDING", server_default="PENDING", index=True
    )  # PENDING | IN_PROGRESS | REVIEW | COMPLETED | CANCELLED
    priority: str = Column(String(20), nullable=False, default="MEDIUM", server_default="MEDIUM")  # type: ignore[assignment]
    budget: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    start_date: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    end_date: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(DateTime(timezone=True), default=utcnow, index=True)  # type: ignore[assignment]
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    client = relationship("User", lazy="selectin")
    members = relationship(
        "ProjectMember",
        back_populates="project",
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class ProjectMember(Base):
    __tablename__ = "project_members"
    __table_args__ = (UniqueConstraint("project_id", "user_id", name="uq_project_member"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    project_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)  # type: ignore[assignment]
    role: str = Column(String(50), nullable=False, default="Developer")  # type: ignore[assignment]
    joined_at: datetime = Column(DateTime(timezone=True), default=utcnow)  # type: ignore[assignment]

    project = relationship("Project", back_populates="members")
    user = relationship("User", lazy="selectin")
