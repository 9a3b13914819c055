"""
Self-service profile endpoints for the authenticated user.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from devcore.api.v1.deps import get_current_active_user, get_db, get_effects
from devcore.core.exceptions import ValidationFailed
from devcore.core.security import get_password_hash, verify_password
from devcore.models.user import User
from devcore.schemas.common import Envelope, MessageResponse
from devcore.schemas.user import PasswordChange, UserRead, UserSelfUpdate
from devcore.services import audit
from devcore.services.audit import PostCommitEffects

router = APIRouter(prefix="/users", tags=["users"])
logger = logging.getLogger(__name__)


@router.get("/me", response_model=Envelope[UserRead])
async def get_profile(current_user: User = Depends(get_current_active_user)) -> dict:
    return {"data": current_user}


@router.patch("/me", response_model=Envelope[UserRead])
async def update_profile(
    body: UserSelfUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    effects: PostCommitEffects = Depends(get_effects),
) -> dict:
    """Edit own profile. Role, approval and permission fields are never accepted here."""
    changes = body.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(current_user, field, value)
    await db.commit()
    await db.refresh(current_user)

    effects.activity(
        audit.USER_UPDATED,
        current_user.id,
        current_user.id,
        "user",
        {"action": "PROFILE_UPDATED", "fields": sorted(changes)},
    )
    await effects.run(db)
    return {"message": "Profile updated successfully", "data": current_user}


@router.patch("/me/password", response_model=MessageResponse)
async def change_password(
    body: PasswordChange,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    effects: PostCommitEffects = Depends(get_effects),
) -> MessageResponse:
    if not verify_password(body.current_password, current_user.hashed_password):
        raise ValidationFailed("Current password is incorrect")
    if body.current_password == body.new_password:
        raise ValidationFailed("New password must differ from the current password")

    current_user.hashed_password = get_password_hash(body.new_password)
    await db.commit()
    logger.info("User %s changed their password", current_user.id)

    effects.activity(
        audit.USER_UPDATED,
        current_user.id,
        current_user.id,
        "user",
        {"action": "PASSWORD_CHANGED"},
    )
    await effects.run(db)
    return MessageResponse(message="Password updated successfully")
