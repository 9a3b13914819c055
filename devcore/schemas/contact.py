"""Pydantic schemas for the public contact form and its admin inbox."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Literal

from pydantic import field_validator

from devcore.schemas.common import CamelModel

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

ContactStatus = Literal["NEW", "READ", "REPLIED", "ARCHIVED"]


class ContactCreate(CamelModel):
    name: str
    email: str
    phone: str | None = None
    company: str | None = None
    subject: str | None = None
    message: str

    @field_validator("name", "message")
    @classmethod
    def _required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("This field is required")
        return v

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        v = v.strip().lower()
        if not _EMAIL_RE.match(v):
            raise ValueError("Please provide a valid email address")
        return v


class ContactUpdate(CamelModel):
    status: ContactStatus | None = None
    notes: str | None = None


class ContactReply(CamelModel):
    message: str
    subject: str | None = None

    @field_validator("message")
    @classmethod
    def _message(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Reply message is required")
        return v


class ContactRead(CamelModel):
    id: int
    name: str
    email: str
    phone: str | None = None
    company: str | None = None
    subject: str | None = None
    message: str
    status: str
    notes: str | None = None
    replied_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
