"""
Password reset: request a single-use link, verify it, and set a new password.

Reset tokens are 32 random bytes; only their SHA-256 digest is stored.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from devcore.api.v1.deps import client_ip, get_db
from devcore.core.config import settings
from devcore.core.exceptions import RateLimited, ValidationFailed
from devcore.core.security import (generate_reset_token, get_password_hash,
                                   hash_token)
from devcore.db.base import ensure_utc, utcnow
from devcore.models.password_reset import PasswordReset
from devcore.models.user import User
from devcore.schemas.auth import (ForgotPasswordRequest, ResetPasswordRequest,
                                  ResetTokenCheck)
from devcore.schemas.common import Envelope, MessageResponse
from devcore.services import audit
from devcore.services.mailer import queue_email
from devcore.services.rate_limit import SlidingWindowLimiter, get_reset_limiter

router = APIRouter(prefix="/auth", tags=["password-reset"])
logger = logging.getLogger(__name__)

GENERIC_RESET_MESSAGE = (
    "If an account exists with this email, you will receive a password reset link"
)
INVALID_TOKEN = "Invalid or expired reset token"


async def _valid_reset(db: AsyncSession, token: str) -> tuple[PasswordReset, User]:
    record = await db.scalar(
        select(PasswordReset).where(PasswordReset.token_hash == hash_token(token))
    )
    if record is None or record.used or ensure_utc(record.expires_at) <= utcnow():
        raise ValidationFailed(INVALID_TOKEN)
    user = await db.get(User, record.user_id)
    if user is None or not user.is_active:
        raise ValidationFailed(INVALID_TOKEN)
    return record, user


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    body: ForgotPasswordRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    limiter: SlidingWindowLimiter = Depends(get_reset_limiter),
) -> MessageResponse:
    """Issue a reset link. The response is identical whether or not the email exists."""
    user = await db.scalar(select(User).where(User.email == body.email))
    if user is None or not user.is_active:
        logger.info("Password reset requested for unknown or inactive account")
        return MessageResponse(message=GENERIC_RESET_MESSAGE)

    if not limiter.hit(user.id):
        raise RateLimited("Too many password reset requests. Please try again later.")

    token = generate_reset_token()
    await db.execute(delete(PasswordReset).where(PasswordReset.user_id == user.id))
    db.add(
        PasswordReset(
            user_id=user.id,
            token_hash=hash_token(token),
            expires_at=utcnow() + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
        )
    )
    db.add(
        audit.activity_entry(
            audit.USER_UPDATED,
            user.id,
            user.id,
            "user",
            {"action": "PASSWORD_RESET_REQUESTED"},
            client_ip(request),
        )
    )
    db.add(
        audit.notification_entry(
            user.id,
            "Password Reset Requested",
            "A password reset was requested for your account. "
            "If this wasn't you, please secure your account.",
            "PASSWORD_RESET",
            "/profile/security",
        )
    )
    await db.commit()
    logger.info("Password reset token issued for user %s", user.id)

    queue_email(
        background_tasks,
        user.email,
        "password-reset",
        first_name=user.first_name,
        reset_url=f"{settings.FRONTEND_URL}/reset-password/{token}",
        expires_minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES,
    )
    return MessageResponse(message=GENERIC_RESET_MESSAGE)


@router.get("/verify-reset-token/{token}", response_model=Envelope[ResetTokenCheck])
async def verify_reset_token(
    token: str,
    db: AsyncSession = Depends(get_db),
) -> dict:
    _record, user = await _valid_reset(db, token)
    return {"message": "Token is valid", "data": {"email": user.email}}


@router.post("/reset-password/{token}", response_model=MessageResponse)
async def reset_password(
    token: str,
    body: ResetPasswordRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Set the new password, burn the token and every other outstanding token, in one commit."""
    record, user = await _valid_reset(db, token)

    # Conditional update: a concurrent reset with the same token leaves rowcount == 0.
    claimed = await db.execute(
        update(PasswordReset)
        .where(PasswordReset.id == record.id, PasswordReset.used.is_(False))
        .values(used=True, used_at=utcnow())
    )
    if claimed.rowcount != 1:
        await db.rollback()
        raise ValidationFailed(INVALID_TOKEN)

    user.hashed_password = get_password_hash(body.password)
    await db.execute(
        delete(PasswordReset).where(
            PasswordReset.user_id == user.id,
            PasswordReset.id != record.id,
        )
    )
    db.add(
        audit.activity_entry(
            audit.USER_UPDATED,
            user.id,
            user.id,
            "user",
            {"action": "PASSWORD_RESET_SUCCESS"},
            client_ip(request),
        )
    )
    db.add(
        audit.notification_entry(
            user.id,
            "Password Changed",
            "Your password has been reset successfully.",
            "PASSWORD_RESET",
            "/profile/security",
        )
    )
    await db.commit()
    logger.info("Password reset completed for user %s", user.id)

    queue_email(
        background_tasks,
        user.email,
        "password-reset-success",
        first_name=user.first_name,
    )
    return MessageResponse(message="Password has been reset successfully")
