"""Pydantic schemas for signup, login and password reset."""

from __future__ import annotations

from pydantic import field_validator, model_validator

from devcore.core.permissions import Role
from devcore.schemas.common import CamelModel
from devcore.schemas.user import UserRead


def _normalise_email(v: str) -> str:
    v = v.strip().lower()
    if "@" not in v or v.startswith("@") or v.endswith("@"):
        raise ValueError("Invalid email address")
    return v


class SignupRequest(CamelModel):
    name: str
    email: str
    password: str
    phone: str | None = None
    role: Role = Role.CLIENT
    invite_code: str | None = None
    company_name: str | None = None
    industry: str | None = None
    position: str | None = None
    skills: list[str] | None = None
    experience: str | None = None
    github_username: str | None = None
    portfolio: str | None = None

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _normalise_email(v)

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be empty")
        return v

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        return v

    @field_validator("invite_code")
    @classmethod
    def _code(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip().upper()
        return v or None


class LoginRequest(CamelModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return v.strip().lower()


class ReauthenticateRequest(CamelModel):
    password: str


class VerifyInviteRequest(CamelModel):
    code: str

    @field_validator("code")
    @classmethod
    def _code(cls, v: str) -> str:
        return v.strip().upper()


class AuthData(CamelModel):
    token: str | None = None
    user: UserRead


class TokenData(CamelModel):
    token: str
    expires_in: int


class InviteCheck(CamelModel):
    role: str


class ForgotPasswordRequest(CamelModel):
    email: str

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _normalise_email(v)


class ResetPasswordRequest(CamelModel):
    password: str
    confirm_password: str

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters long")
        return v

    @model_validator(mode="after")
    def _match(self) -> "ResetPasswordRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class ResetTokenCheck(CamelModel):
    email: str
