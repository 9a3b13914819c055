"""
ContactMessage model: public contact-form submissions.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from devcore.db.base import Base, utcnow


class ContactMessage(Base):
    __tablename__ = "contact_messages"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    email: str = Column(String(320), nullable=False, index=True)  # type: ignore[assignment]
    phone: str | None = Column(String(30), nullable=True)  # type: ignore[assignment]
    company: str | None = Column(String(200), nullable=True)  # type: ignore[assignment]
    subject: str | None = Column(String(300), nullable=True)  # type: ignore[assignment]
    message: str = Column(Text, nullable=False)  # type: ignore[assignment]
    status: str = Column(  # type: ignore[assignment]
        String(20), nullable=False, default="NEW", server_default="NEW", index=True
    )  # NEW | READ | REPLIED | ARCHIVED
    notes: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    replied_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(DateTime(timezone=True), default=utcnow, index=True)  # type: ignore[assignment]
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
