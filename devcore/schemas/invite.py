"""Pydantic schemas for invite codes."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from devcore.schemas.common import CamelModel

_INVITABLE_ROLES = {"ADMIN", "DEVELOPER"}


class InviteCreate(CamelModel):
    role: str
    expires_in_days: int | None = Field(default=None, ge=1, le=365)

    @field_validator("role")
    @classmethod
    def _role(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in _INVITABLE_ROLES:
            raise ValueError("Invalid role. Must be ADMIN or DEVELOPER")
        return v


class InviteRead(CamelModel):
    id: int
    code: str
    role: str
    used: bool
    used_by: str | None = None
    used_at: datetime | None = None
    created_by: int | None = None
    expires_at: datetime | None = None
    created_at: datetime | None = None
