"""
System settings endpoints: super-admin configuration document.

Singleton pattern: one JSON document behind :class:`SettingsStore`. GET
returns it merged over defaults, PUT merges a partial patch into it.
Handlers are plain ``def`` so the file I/O runs in the threadpool.
"""

from __future__ import annotations

import logging
import platform
import re
import sys
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Body, Depends
from pydantic import ValidationError

from devcore.api.v1.deps import require_super_admin
from devcore.core.config import settings as app_settings
from devcore.core.exceptions import ValidationFailed
from devcore.models.user import User
from devcore.schemas.common import Envelope, MessageResponse
from devcore.schemas.settings import (EmailTestRequest, SettingsImport,
                                      SettingsPatch, SystemSettings,
                                      ValidationReport)
from devcore.services.settings_store import (SECTIONS, SettingsStore,
                                             get_settings_store,
                                             validate_settings)

router = APIRouter(prefix="/settings", tags=["settings"])
logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0"
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_STARTED = time.monotonic()


def _document(store: SettingsStore) -> dict:
    return store.load().model_dump(by_alias=True)


@router.get("", response_model=Envelope[SystemSettings])
def get_settings(
    store: SettingsStore = Depends(get_settings_store),
    _admin: User = Depends(require_super_admin),
) -> dict:
    return {"data": store.load()}


@router.put("", response_model=Envelope[SystemSettings])
def update_settings(
    body: SettingsPatch,
    store: SettingsStore = Depends(get_settings_store),
    current_user: User = Depends(require_super_admin),
) -> dict:
    """Merge each supplied section key-by-key into the stored document."""
    document = store.update(body.model_dump(exclude_none=True))
    logger.info("System settings updated by user %s", current_user.id)
    return {"message": "Settings updated successfully", "data": document}


@router.post("/test-email", response_model=Envelope[dict])
def test_email_settings(
    body: EmailTestRequest,
    store: SettingsStore = Depends(get_settings_store),
    _admin: User = Depends(require_super_admin),
) -> dict:
    """Simulated delivery: reports where a test message would go."""
    if not body.email:
        raise ValidationFailed("Email address is required for testing")
    if not _EMAIL_RE.match(body.email.strip()):
        raise ValidationFailed("Invalid email address")

    email = store.load().email
    return {
        "message": "Email test simulation completed",
        "data": {
            "success": True,
            "message": "Test email would be sent to your email address",
            "details": {
                "to": body.email.strip(),
                "from": email.from_email,
                "smtpHost": email.smtp_host,
                "smtpPort": email.smtp_port,
                "encryption": email.encryption,
                "status": "simulated",
            },
        },
    }


@router.post("/reset", response_model=Envelope[SystemSettings])
def reset_settings(
    store: SettingsStore = Depends(get_settings_store),
    current_user: User = Depends(require_super_admin),
) -> dict:
    document = store.reset()
    logger.warning("System settings reset to defaults by user %s", current_user.id)
    return {"message": "Settings reset to defaults", "data": document}


@router.get("/export", response_model=Envelope[dict])
def export_settings(
    store: SettingsStore = Depends(get_settings_store),
    _admin: User = Depends(require_super_admin),
) -> dict:
    return {
        "data": {
            "settings": _document(store),
            "exportDate": datetime.now(timezone.utc).isoformat(),
            "version": EXPORT_VERSION,
        }
    }


@router.post("/import", response_model=MessageResponse)
def import_settings(
    body: SettingsImport,
    store: SettingsStore = Depends(get_settings_store),
    current_user: User = Depends(require_super_admin),
) -> MessageResponse:
    if not body.settings:
        raise ValidationFailed("Settings data is required for import")
    store.replace(body.settings)
    logger.info("System settings imported by user %s", current_user.id)
    return MessageResponse(message="Settings imported successfully")


@router.post("/validate", response_model=ValidationReport)
def validate_settings_document(
    document: dict = Body(default_factory=dict),
    _admin: User = Depends(require_super_admin),
) -> ValidationReport:
    errors = validate_settings(document)
    if not errors:
        try:
            SystemSettings.model_validate(document)
        except ValidationError as exc:
            errors = [err["msg"] for err in exc.errors(include_url=False)]
    return ValidationReport(
        success=not errors,
        errors=errors,
        message="Settings are valid" if not errors else "Validation failed",
    )


@router.get("/system-info", response_model=Envelope[dict])
def system_info(
    store: SettingsStore = Depends(get_settings_store),
    _admin: User = Depends(require_super_admin),
) -> dict:
    return {
        "data": {
            "pythonVersion": sys.version.split()[0],
            "platform": platform.platform(),
            "uptimeSeconds": round(time.monotonic() - _STARTED, 1),
            "appVersion": app_settings.VERSION,
            "settingsFile": str(store.path),
            "settingsFileExists": store.exists,
        }
    }


@router.get("/{section}", response_model=Envelope[dict])
def get_settings_section(
    section: str,
    store: SettingsStore = Depends(get_settings_store),
    _admin: User = Depends(require_super_admin),
) -> dict:
    if section not in SECTIONS:
        raise ValidationFailed("Invalid settings section")
    return {"data": _document(store)[section]}
