"""
Notification inbox for the authenticated user.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from devcore.api.v1.deps import get_current_active_user, get_db
from devcore.core.exceptions import NotFound
from devcore.models.notification import Notification
from devcore.models.user import User
from devcore.schemas.common import Envelope, MessageResponse
from devcore.schemas.notification import NotificationRead

router = APIRouter(prefix="/notifications", tags=["notifications"])

INBOX_LIMIT = 50


@router.get("", response_model=Envelope[list[NotificationRead]])
async def list_notifications(
    unread_only: bool = Query(default=True, alias="unreadOnly"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    """Newest first, capped at ``INBOX_LIMIT``; unread only unless asked otherwise."""
    stmt = select(Notification).where(Notification.user_id == current_user.id)
    if unread_only:
        stmt = stmt.where(Notification.is_read.is_(False))
    result = await db.execute(
        stmt.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(INBOX_LIMIT)
    )
    return {"data": result.scalars().all()}


@router.patch("/read-all", response_model=MessageResponse)
async def mark_all_read(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> MessageResponse:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == current_user.id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    await db.commit()
    return MessageResponse(message=f"{result.rowcount} notification(s) marked as read")


@router.patch("/{notification_id}/read", response_model=Envelope[NotificationRead])
async def mark_read(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    notification = await db.scalar(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == current_user.id,
        )
    )
    if notification is None:
        raise NotFound("Notification not found")
    notification.is_read = True
    await db.commit()
    return {"message": "Notification marked as read", "data": notification}
