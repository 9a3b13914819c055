"""Pydantic schemas for the system-settings document."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from devcore.schemas.common import CamelModel


class GeneralSettings(CamelModel):
    site_name: str = "Project Management System"
    site_url: str = "http://localhost:3000"
    admin_email: str = "admin@example.com"
    timezone: str = "UTC"
    date_format: str = "MM/DD/YYYY"
    language: str = "en"


class SecuritySettings(CamelModel):
    require_email_verification: bool = False
    enable_2fa: bool = Field(default=False, alias="enable2FA")
    password_min_length: int = 8
    password_require_special: bool = True
    password_require_numbers: bool = True
    session_timeout: int = 60
    login_attempts: int = 5


class NotificationSettings(CamelModel):
    email_notifications: bool = True
    new_user_alerts: bool = True
    task_assignment_alerts: bool = True
    project_updates: bool = True
    system_maintenance: bool = True


class EmailSettings(CamelModel):
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    from_email: str = "noreply@example.com"
    from_name: str = "Project Management System"
    encryption: Literal["none", "ssl", "tls"] = "tls"


class SystemSettings(CamelModel):
    general: GeneralSettings = GeneralSettings()
    security: SecuritySettings = SecuritySettings()
    notifications: NotificationSettings = NotificationSettings()
    email: EmailSettings = EmailSettings()


class SettingsPatch(CamelModel):
    """Partial update: each section is merged key-by-key into the stored one."""

    general: dict[str, Any] | None = None
    security: dict[str, Any] | None = None
    notifications: dict[str, Any] | None = None
    email: dict[str, Any] | None = None


class SettingsImport(CamelModel):
    settings: dict[str, Any] | None = None


class EmailTestRequest(CamelModel):
    email: str | None = None


class ValidationReport(CamelModel):
    success: bool
    errors: list[str]
    message: str
