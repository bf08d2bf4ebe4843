"""
Notification service.

Fan-out creation on task mutations with realtime push, the read/delete
transitions, listing with a live unread count, and the retention purge.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.core.config import settings
from taskboard.core.exceptions import ForbiddenException, NotFoundException
from taskboard.core.permissions import (
    Actor,
    can_list_all_notifications,
    can_manage_notification,
)
from taskboard.crud.notification import crud_notification
from taskboard.db.base import utcnow
from taskboard.models.notification import Notification
from taskboard.services.websocket_service import ws_manager

logger = logging.getLogger(__name__)

# Session.info key holding notifications to push once the transaction commits.
PENDING_PUSH_KEY = "pending_notification_pushes"


def realtime_payload(notification: Notification) -> dict[str, Any]:
    return {
        "type": "notification",
        "data": {
            "id": str(notification.id),
            "recipient_id": str(notification.user_id),
            "title": notification.title,
            "message": notification.message,
            "status": notification.status,
            "task_id": str(notification.task_id) if notification.task_id else None,
            "created_at": notification.created_at.isoformat(),
        },
    }


class NotificationService:

    # ── Creation / fan-out ────────────────────────────────────────────────────

    async def notify_users(
        self,
        db: AsyncSession,
        *,
        recipient_ids: Iterable[uuid.UUID],
        title: str,
        message: str,
        task_id: uuid.UUID | None = None,
        exclude: uuid.UUID | None = None,
    ) -> list[Notification]:
        """
        Create one notification per distinct recipient and queue it for realtime push.

        Each write runs in its own savepoint. A recipient whose write fails is
        logged and skipped; the others are kept and nothing is raised. Queued
        notifications are pushed by ``publish_pending`` after the commit.
        """
        created: list[Notification] = []
        seen: set[uuid.UUID] = set()
        for recipient_id in recipient_ids:
            if recipient_id in seen or recipient_id == exclude:
                continue
            seen.add(recipient_id)
            try:
                async with db.begin_nested():
                    notification = await crud_notification.create_notification(
                        db,
                        user_id=recipient_id,
                        title=title,
                        message=message,
                        task_id=task_id,
                    )
            except SQLAlchemyError as exc:
                logger.error(
                    "Failed to create notification for user_id=%s title=%r: %s",
                    recipient_id,
                    title,
                    exc,
                )
                continue
            created.append(notification)
        db.info.setdefault(PENDING_PUSH_KEY, []).extend(created)
        return created

    async def publish_pending(self, db: AsyncSession) -> int:
        """Push notifications queued on a committed session. Returns how many were queued."""
        pending: list[Notification] = db.info.pop(PENDING_PUSH_KEY, [])
        for notification in pending:
            await self._push(notification)
        return len(pending)

    def discard_pending(self, db: AsyncSession) -> None:
        db.info.pop(PENDING_PUSH_KEY, None)

    async def _push(self, notification: Notification) -> None:
        user_key = str(notification.user_id)
        if not ws_manager.is_connected(user_key):
            return
        try:
            await ws_manager.send_personal_message(user_key, realtime_payload(notification))
        except Exception as exc:
            logger.warning("Realtime push failed for user_id=%s: %s", user_key, exc)

    # ── Queries ───────────────────────────────────────────────────────────────

    async def list_for_user(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        page: int = 1,
        size: int = 10,
    ) -> tuple[list[Notification], int, int]:
        """Return ``(items newest-first, total, unread_count)`` read at query time."""
        items, total = await crud_notification.list_by_user(
            db, user_id=user_id, skip=(page - 1) * size, limit=size
        )
        unread = await crud_notification.count_unread(db, user_id=user_id)
        return items, total, unread

    async def list_all(
        self,
        db: AsyncSession,
        *,
        actor: Actor,
        page: int = 1,
        size: int = 20,
        status: str | None = None,
    ) -> tuple[list[Notification], int]:
        if not can_list_all_notifications(actor):
            raise ForbiddenException("Admin privileges required")
        return await crud_notification.list_all(
            db, skip=(page - 1) * size, limit=size, status=status
        )

    async def stats(self, db: AsyncSession, *, user_id: uuid.UUID) -> dict[str, int]:
        total = await crud_notification.get_count(db, Notification.user_id == user_id)
        unread = await crud_notification.count_unread(db, user_id=user_id)
        return {"total": total, "unread": unread, "read": total - unread}

    # ── Transitions ───────────────────────────────────────────────────────────

    async def _get_manageable(
        self, db: AsyncSession, *, notification_id: uuid.UUID, actor: Actor
    ) -> Notification:
        notification = await crud_notification.get(db, notification_id)
        if notification is None:
            raise NotFoundException("Notification", str(notification_id))
        if not can_manage_notification(actor, notification):
            raise ForbiddenException("You can only manage your own notifications")
        return notification

    async def mark_read(
        self, db: AsyncSession, *, notification_id: uuid.UUID, actor: Actor
    ) -> Notification:
        """unread → read. Marking an already-read notification is a no-op."""
        notification = await self._get_manageable(
            db, notification_id=notification_id, actor=actor
        )
        return await crud_notification.mark_read(db, notification=notification)

    async def mark_all_read(self, db: AsyncSession, *, actor: Actor) -> int:
        return await crud_notification.mark_all_read(db, user_id=actor.id)

    async def delete(
        self, db: AsyncSession, *, notification_id: uuid.UUID, actor: Actor
    ) -> None:
        notification = await self._get_manageable(
            db, notification_id=notification_id, actor=actor
        )
        await crud_notification.remove(db, db_obj=notification)

    # ── Retention ─────────────────────────────────────────────────────────────

    async def purge_expired(self, db: AsyncSession, *, now: datetime | None = None) -> int:
        """
        Delete read notifications created at or before ``now - retention``.
        Unread notifications are never touched. Returns the number removed and
        logs instead of raising.
        """
        now = now or utcnow()
        cutoff = now - timedelta(days=settings.NOTIFICATION_RETENTION_DAYS)
        try:
            async with db.begin_nested():
                deleted = await crud_notification.delete_read_before(db, cutoff=cutoff)
        except SQLAlchemyError as exc:
            logger.error("Notification cleanup failed: %s", exc)
            return 0
        logger.info("Deleted %d old read notifications", deleted)
        return deleted


notification_service = NotificationService()


async def purge_expired_notifications(db: AsyncSession, now: datetime) -> int:
    """Sweep entry point: remove read notifications past the retention window."""
    return await notification_service.purge_expired(db, now=now)
