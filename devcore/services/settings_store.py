"""
File-backed system settings document.

Singleton pattern: one JSON file at ``SETTINGS_FILE``. Reads merge the
stored sections over the defaults, so a missing or partial file still
yields a complete document.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from devcore.core.config import settings
from devcore.core.exceptions import ValidationFailed
from devcore.schemas.settings import SystemSettings

logger = logging.getLogger(__name__)

SECTIONS = ("general", "security", "notifications", "email")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    values = data.get(name)
    return values if isinstance(values, dict) else {}


def _whole_number(value: Any, label: str, errors: list[str]) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        errors.append(f"{label} must be a whole number")
        return None
    return value


def validate_settings(data: dict[str, Any]) -> list[str]:
    """Range / format checks over a (possibly partial) camelCase document."""
    errors: list[str] = []
    general, security, email = (_section(data, name) for name in ("general", "security", "email"))

    site_name = general.get("siteName")
    if site_name is not None and len(str(site_name).strip()) < 2:
        errors.append("Site name must be at least 2 characters")
    site_url = general.get("siteUrl")
    if site_url is not None and not str(site_url).startswith("http"):
        errors.append("Site URL must start with http:// or https://")
    admin_email = general.get("adminEmail")
    if admin_email and not _EMAIL_RE.match(str(admin_email)):
        errors.append("Admin email is invalid")

    min_len = _whole_number(security.get("passwordMinLength"), "Password minimum length", errors)
    if min_len is not None and min_len < 6:
        errors.append("Password minimum length must be at least 6")
    timeout = _whole_number(security.get("sessionTimeout"), "Session timeout", errors)
    if timeout is not None and not 5 <= timeout <= 1440:
        errors.append("Session timeout must be between 5 and 1440 minutes")
    attempts = _whole_number(security.get("loginAttempts"), "Login attempts", errors)
    if attempts is not None and not 1 <= attempts <= 10:
        errors.append("Login attempts must be between 1 and 10")

    port = _whole_number(email.get("smtpPort"), "SMTP port", errors)
    if port is not None and not 1 <= port <= 65535:
        errors.append("SMTP port must be between 1 and 65535")
    from_email = email.get("fromEmail")
    if from_email and not _EMAIL_RE.match(str(from_email)):
        errors.append("From email is invalid")
    return errors


class SettingsStore:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    @property
    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> SystemSettings:
        if not self.exists:
            return SystemSettings()
        try:
            saved = json.loads(self.path.read_text(encoding="utf-8"))
            return self._merge(SystemSettings(), saved)
        except (OSError, ValueError, ValidationFailed) as exc:
            logger.warning("Settings file %s unreadable, using defaults: %s", self.path, exc)
            return SystemSettings()

    def save(self, document: SystemSettings) -> SystemSettings:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps(document.model_dump(mode="json", by_alias=True), indent=2),
            encoding="utf-8",
        )
        logger.info("System settings written to %s", self.path)
        return document

    def update(self, patch: dict[str, Any]) -> SystemSettings:
        errors = validate_settings(patch)
        general = patch.get("general")
        if general is not None and not (general.get("siteName", True) and general.get("siteUrl", True)):
            errors.insert(0, "Site name and URL are required")
        if errors:
            raise ValidationFailed(errors[0], errors=errors)

        merged = self._merge(self.load(), patch)
        if merged.notifications.email_notifications:
            email = merged.email
            if not (email.smtp_host and email.smtp_port and email.smtp_username):
                raise ValidationFailed(
                    "SMTP configuration is required when email notifications are enabled"
                )
        return self.save(merged)

    def reset(self) -> SystemSettings:
        return self.save(SystemSettings())

    def replace(self, document: dict[str, Any]) -> SystemSettings:
        if any(not isinstance(document.get(s), dict) for s in SECTIONS):
            raise ValidationFailed("Invalid settings format")
        try:
            parsed = SystemSettings.model_validate(document)
        except ValidationError as exc:
            raise ValidationFailed("Invalid settings format") from exc
        return self.save(parsed)

    @staticmethod
    def _merge(base: SystemSettings, patch: dict[str, Any]) -> SystemSettings:
        current = base.model_dump(by_alias=True)
        for section in SECTIONS:
            values = patch.get(section)
            if isinstance(values, dict):
                current[section] = {**current[section], **values}
        try:
            return SystemSettings.model_validate(current)
        except ValidationError as exc:
            raise ValidationFailed(
                "Invalid settings value",
                details=exc.errors(include_url=False, include_context=False),
            ) from exc


def get_settings_store() -> SettingsStore:
    """FastAPI dependency."""
    return SettingsStore(settings.SETTINGS_FILE)
