"""
Invite codes: issued by admins, redeemed once at signup for a staff role.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Literal

from fastapi import APIRouter, Depends
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from devcore.api.v1.deps import (get_db, get_effects, require_roles,
                                 require_super_admin)
from devcore.core.exceptions import Conflict, ValidationFailed
from devcore.core.permissions import Role
from devcore.core.security import generate_invite_code
from devcore.db.base import utcnow
from devcore.models.invite_code import InviteCode
from devcore.models.user import User
from devcore.schemas.common import Envelope, MessageResponse
from devcore.schemas.invite import InviteCreate, InviteRead
from devcore.services import audit
from devcore.services.audit import PostCommitEffects
from devcore.services.queries import get_or_404

router = APIRouter(prefix="/invite-codes", tags=["invite-codes"])
logger = logging.getLogger(__name__)

_MAX_CODE_ATTEMPTS = 5


@router.post("", response_model=Envelope[InviteRead], status_code=201)
async def create_invite_code(
    body: InviteCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(Role.SUPER_ADMIN, Role.ADMIN)),
    effects: PostCommitEffects = Depends(get_effects),
) -> dict:
    for _ in range(_MAX_CODE_ATTEMPTS):
        code = generate_invite_code()
        if await db.scalar(select(InviteCode.id).where(InviteCode.code == code)) is None:
            break
    else:
        raise Conflict("Could not generate a unique invite code, please retry")

    invite = InviteCode(
        code=code,
        role=body.role,
        created_by=current_user.id,
        expires_at=utcnow() + timedelta(days=body.expires_in_days) if body.expires_in_days else None,
    )
    db.add(invite)
    await db.commit()
    await db.refresh(invite)
    logger.info("Invite code for %s created by user %s", invite.role, current_user.id)

    effects.activity(
        audit.INVITE_CREATED,
        current_user.id,
        invite.id,
        "invite_code",
        {"role": invite.role, "expiresInDays": body.expires_in_days},
    )
    await effects.run(db)
    return {"message": "Invite code created successfully", "data": invite}


@router.get("", response_model=Envelope[list[InviteRead]])
async def list_invite_codes(
    status: Literal["active", "used", "expired"] | None = None,
    role: Literal["ADMIN", "DEVELOPER"] | None = None,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_roles(Role.SUPER_ADMIN, Role.ADMIN)),
) -> dict:
    now = utcnow()
    stmt = select(InviteCode).order_by(InviteCode.created_at.desc(), InviteCode.id.desc())
    if status == "active":
        stmt = stmt.where(
            InviteCode.used.is_(False),
            or_(InviteCode.expires_at.is_(None), InviteCode.expires_at > now),
        )
    elif status == "used":
        stmt = stmt.where(InviteCode.used.is_(True))
    elif status == "expired":
        stmt = stmt.where(InviteCode.used.is_(False), InviteCode.expires_at <= now)
    if role:
        stmt = stmt.where(InviteCode.role == role)
    result = await db.execute(stmt)
    return {"data": result.scalars().all()}


@router.delete("/{invite_id}", response_model=MessageResponse)
async def delete_invite_code(
    invite_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_super_admin),
    effects: PostCommitEffects = Depends(get_effects),
) -> MessageResponse:
    invite = await get_or_404(db, InviteCode, invite_id, "Invite code")
    if invite.used:
        raise ValidationFailed("Cannot delete used invite code")
    code = invite.code
    await db.delete(invite)
    await db.commit()

    effects.activity(audit.INVITE_DELETED, current_user.id, invite_id, "invite_code", {"code": code})
    await effects.run(db)
    return MessageResponse(message="Invite code deleted successfully")
