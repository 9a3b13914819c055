"""
Outbound email: named plain-text templates delivered over SMTP.

Delivery runs from FastAPI ``BackgroundTasks`` after the response is sent,
so a slow or failing mail server never affects the request. When
``SMTP_HOST`` is empty, messages are skipped with an info log.
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Any

from fastapi import BackgroundTasks

from devcore.core.config import settings

logger = logging.getLogger(__name__)

# name -> (subject, body); both are str.format templates
TEMPLATES: dict[str, tuple[str, str]] = {
    "approval": (
        "Your account has been approved",
        "Hi {first_name},\n\n"
        "Your {role} account has been approved. You can now sign in at\n"
        "{login_url}\n",
    ),
    "rejection": (
        "Update on your application",
        "Hi {first_name},\n\n"
        "Unfortunately your application was not approved.\n"
        "Reason: {reason}\n",
    ),
    "welcome-client": (
        "Welcome aboard",
        "Hi {first_name},\n\nYour client account is ready. Sign in at {login_url}\n",
    ),
    "application-received": (
        "We received your application",
        "Hi {first_name},\n\n"
        "Thanks for applying as {role}. An administrator will review your\n"
        "application and you will be notified once it is approved.\n",
    ),
    "password-reset": (
        "Password reset request",
        "Hi {first_name},\n\n"
        "Use the link below to choose a new password. It expires in\n"
        "{expires_minutes} minutes and can only be used once.\n\n{reset_url}\n\n"
        "If you did not request this, you can ignore this email.\n",
    ),
    "password-reset-success": (
        "Your password was changed",
        "Hi {first_name},\n\n"
        "Your password was reset successfully. If this was not you, contact\n"
        "support immediately.\n",
    ),
    "message-received-client": (
        "We received your message",
        "Hi {name},\n\nThanks for reaching out. We will get back to you shortly.\n",
    ),
    "new-contact-inquiry": (
        "New contact inquiry from {name}",
        "From: {name} <{email}>\nCompany: {company}\nSubject: {subject}\n\n{message}\n",
    ),
    "reply-to-contact": (
        "{subject}",
        "Hi {name},\n\n{message}\n",
    ),
}


def render(template: str, context: dict[str, Any]) -> tuple[str, str]:
    try:
        subject, body = TEMPLATES[template]
    except KeyError:
        raise ValueError(f"Unknown email template: {template}") from None
    return subject.format(**context), body.format(**context)


def smtp_is_configured() -> bool:
    return bool(settings.SMTP_HOST)


def send_email(to_email: str, template: str, context: dict[str, Any]) -> bool:
    """Render *template* and deliver it synchronously. Returns delivery success."""
    subject, body = render(template, context)
    if not smtp_is_configured():
        logger.info("SMTP not configured; skipping '%s' email to %s", template, to_email)
        return False

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = settings.SMTP_FROM
    msg["To"] = to_email
    msg.set_content(body)

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10) as smtp:
            if settings.SMTP_USE_TLS:
                smtp.starttls()
            if settings.SMTP_USER:
                smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("Failed to send '%s' email to %s: %s", template, to_email, exc)
        return False
    logger.info("Sent '%s' email to %s", template, to_email)
    return True


def queue_email(
    background_tasks: BackgroundTasks,
    to_email: str | None,
    template: str,
    **context: Any,
) -> None:
    """Schedule delivery after the response (fire-and-forget)."""
    if not to_email:
        return
    render(template, context)
    background_tasks.add_task(send_email, to_email, template, context)
