"""
Contact form intake (public) and the admin inbox that answers it.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from devcore.api.v1.deps import get_db, require_roles
from devcore.core.config import settings
from devcore.core.permissions import Role
from devcore.db.base import utcnow
from devcore.models.contact_message import ContactMessage
from devcore.models.user import User
from devcore.schemas.common import Envelope, MessageResponse
from devcore.schemas.contact import (ContactCreate, ContactRead, ContactReply,
                                     ContactStatus, ContactUpdate)
from devcore.services.mailer import queue_email
from devcore.services.queries import get_or_404, paginate

router = APIRouter(prefix="/contact", tags=["contact"])
logger = logging.getLogger(__name__)

admin_user = require_roles(Role.SUPER_ADMIN, Role.ADMIN)


async def _message_or_404(db: AsyncSession, message_id: int) -> ContactMessage:
    return await get_or_404(db, ContactMessage, message_id, "Contact message")


@router.post("", response_model=Envelope[ContactRead], status_code=201)
async def submit_contact_form(
    body: ContactCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
) -> dict:
    message = ContactMessage(**body.model_dump())
    db.add(message)
    await db.commit()
    logger.info("Contact message %s received from %s", message.id, message.email)

    queue_email(background_tasks, message.email, "message-received-client", name=message.name)
    queue_email(
        background_tasks,
        settings.ADMIN_EMAIL,
        "new-contact-inquiry",
        name=message.name,
        email=message.email,
        company=message.company or "-",
        subject=message.subject or "(no subject)",
        message=message.message,
    )
    return {
        "message": "Thank you for contacting us. We will get back to you soon.",
        "data": message,
    }


@router.get("", response_model=Envelope[list[ContactRead]])
async def list_contact_messages(
    status: ContactStatus | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(admin_user),
) -> dict:
    stmt = select(ContactMessage).order_by(
        ContactMessage.created_at.desc(), ContactMessage.id.desc()
    )
    if status:
        stmt = stmt.where(ContactMessage.status == status)
    messages, pagination = await paginate(db, stmt, page, limit)
    return {"data": messages, "pagination": pagination}


@router.get("/{message_id}", response_model=Envelope[ContactRead])
async def get_contact_message(
    message_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(admin_user),
) -> dict:
    """Opening a NEW message marks it READ."""
    message = await _message_or_404(db, message_id)
    if message.status == "NEW":
        message.status = "READ"
        await db.commit()
        message = await _message_or_404(db, message_id)
    return {"data": message}


@router.patch("/{message_id}", response_model=Envelope[ContactRead])
async def update_contact_message(
    message_id: int,
    body: ContactUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(admin_user),
) -> dict:
    message = await _message_or_404(db, message_id)
    if body.status is not None:
        message.status = body.status
    if body.notes is not None:
        message.notes = body.notes
    await db.commit()
    message = await _message_or_404(db, message_id)
    return {"message": "Contact message updated", "data": message}


@router.post("/{message_id}/reply", response_model=Envelope[ContactRead])
async def reply_to_contact(
    message_id: int,
    body: ContactReply,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(admin_user),
) -> dict:
    message = await _message_or_404(db, message_id)
    subject = body.subject or f"Re: {message.subject or 'Your inquiry'}"

    now = utcnow()
    trail = f"Replied on {now:%Y-%m-%d %H:%M} UTC by {current_user.email}"
    message.status = "REPLIED"
    message.replied_at = now
    message.notes = f"{message.notes}\n\n{trail}" if message.notes else trail
    await db.commit()
    message = await _message_or_404(db, message_id)
    logger.info("Contact message %s answered by user %s", message_id, current_user.id)

    queue_email(
        background_tasks,
        message.email,
        "reply-to-contact",
        name=message.name,
        subject=subject,
        message=body.message,
    )
    return {"message": "Reply sent successfully", "data": message}


@router.delete("/{message_id}", response_model=MessageResponse)
async def delete_contact_message(
    message_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(admin_user),
) -> MessageResponse:
    await _message_or_404(db, message_id)
    await db.execute(delete(ContactMessage).where(ContactMessage.id == message_id))
    await db.commit()
    return MessageResponse(message="Contact message deleted successfully")
