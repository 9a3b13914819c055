"""
Task model and its immutable children: TimeLog and Comment.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (Column, DateTime, Float, ForeignKey, Index, Integer,
                        String, Text)
from sqlalchemy.orm import relationship

from devcore.db.base import Base, utcnow


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (Index("ix_tasks_project_status", "project_id", "status"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    project_id: int = Column(Integer, ForeignKey("projects.id"), nullable=False)  # type: ignore[assignment]
    title: str = Column(String(300), nullable=False)  # type: ignore[assignment]
    description: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    status: str = Column(  # type: ignore[assignment]
        String(20), nullable=False, default="TODO", server_default="TODO", index=True
    )  # TODO | IN_PROGRESS | REVIEW | DONE
    priority: str = Column(String(20), nullable=False, default="MEDIUM", server_default="MEDIUM")  # type: ignore[assignment]
    assigned_to: int | None = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)  # type: ignore[assignment]
    created_by: int = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)  # type: ignore[assignment]
    due_date: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    estimated_hours: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    actual_hours: float = Column(Float, nullable=False, default=0.0, server_default="0")  # type: ignore[assignment]
    completed_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(DateTime(timezone=True), default=utcnow, index=True)  # type: ignore[assignment]
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    project = relationship("Project", lazy="selectin")
    assignee = relationship("User", foreign_keys=[assigned_to], lazy="selectin")
    creator = relationship("User", foreign_keys=[created_by], lazy="selectin")


class TimeLog(Base):
    __tablename__ = "time_logs"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    task_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)  # type: ignore[assignment]
    hours: float = Column(Float, nullable=False)  # type: ignore[assignment]
    description: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    date: datetime = Column(DateTime(timezone=True), default=utcnow)  # type: ignore[assignment]
    created_at: datetime = Column(DateTime(timezone=True), default=utcnow)  # type: ignore[assignment]

    user = relationship("User", lazy="selectin")


class Comment(Base):
    """Comment on a task, or on a project when ``task_id`` is null."""

    __tablename__ = "comments"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    project_id: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=True, index=True
    )
    task_id: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=True, index=True
    )
    user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)  # type: ignore[assignment]
    content: str = Column(Text, nullable=False)  # type: ignore[assignment]
    created_at: datetime = Column(DateTime(timezone=True), default=utcnow)  # type: ignore[assignment]

    user = relationship("User", lazy="selectin")
