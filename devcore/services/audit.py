"""
Activity audit trail and in-app notifications.

Audit entries and notifications are side effects of a primary write. Code
that must stay atomic (password reset, invite redemption) adds them to its
own transaction via :func:`activity_entry` / :func:`notification_entry`.
Everything else collects them in a :class:`PostCommitEffects` list and runs
it after the primary commit: a failing effect is logged and skipped, it
never fails the request.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from devcore.models.activity_log import ActivityLog
from devcore.models.notification import Notification

logger = logging.getLogger(__name__)


# ── Activity types ──────────────────────────────────────────────────
USER_CREATED = "USER_CREATED"
USER_UPDATED = "USER_UPDATED"
USER_APPROVED = "USER_APPROVED"
USER_REJECTED = "USER_REJECTED"
USER_DELETED = "USER_DELETED"
PROJECT_CREATED = "PROJECT_CREATED"
PROJECT_UPDATED = "PROJECT_UPDATED"
PROJECT_DELETED = "PROJECT_DELETED"
TASK_CREATED = "TASK_CREATED"
TASK_UPDATED = "TASK_UPDATED"
TASK_ASSIGNED = "TASK_ASSIGNED"
TASK_COMPLETED = "TASK_COMPLETED"
TASK_DELETED = "TASK_DELETED"
COMMENT_ADDED = "COMMENT_ADDED"
TIME_LOGGED = "TIME_LOGGED"
INVITE_CREATED = "INVITE_CREATED"
INVITE_DELETED = "INVITE_DELETED"


def activity_entry(
    type: str,
    performer_id: int | None,
    target_id: int | None = None,
    target_type: str | None = None,
    details: dict[str, Any] | None = None,
    ip_address: str | None = None,
) -> ActivityLog:
    return ActivityLog(
        type=type,
        performed_by_id=performer_id,
        target_id=target_id,
        target_type=target_type,
        details=details,
        ip_address=ip_address,
    )


def notification_entry(
    user_id: int,
    title: str,
    message: str,
    type: str = "info",
    link: str | None = None,
) -> Notification:
    return Notification(user_id=user_id, title=title, message=message, type=type, link=link)


class PostCommitEffects:
    """Audit / notification rows to write once the primary transaction commits."""

    def __init__(self, ip_address: str | None = None) -> None:
        self.ip_address = ip_address
        self._pending: list[ActivityLog | Notification] = []

    def __len__(self) -> int:
        return len(self._pending)

    def activity(
        self,
        type: str,
        performer_id: int | None,
        target_id: int | None = None,
        target_type: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self._pending.append(
            activity_entry(type, performer_id, target_id, target_type, details, self.ip_address)
        )

    def notify(
        self,
        user_id: int,
        title: str,
        message: str,
        type: str = "info",
        link: str | None = None,
    ) -> None:
        self._pending.append(notification_entry(user_id, title, message, type, link))

    async def run(self, db: AsyncSession) -> int:
        """Persist every pending effect in its own commit. Returns how many landed.

        A side session on the same bind is used so a failed effect never
        rolls back (or expires) the caller's objects.
        """
        written = 0
        pending, self._pending = self._pending, []
        if not pending:
            return 0
        async with AsyncSession(bind=db.bind, expire_on_commit=False) as side:
            for entry in pending:
                try:
                    side.add(entry)
                    await side.commit()
                    written += 1
                except SQLAlchemyError as exc:
                    await side.rollback()
                    logger.error(
                        "Failed to write %s side effect: %s",
                        type(entry).__name__,
                        exc,
                    )
        return written
