"""
Notification CRUD operations.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.crud.base import CRUDBase
from taskboard.models.notification import STATUS_READ, STATUS_UNREAD, Notification


class CRUDNotification(CRUDBase[Notification]):

    async def create_notification(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        title: str,
        message: str,
        task_id: uuid.UUID | None = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            task_id=task_id,
        )
        db.add(notification)
        await db.flush()
        return notification

    async def list_by_user(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 10,
    ) -> tuple[list[Notification], int]:
        total = await self.get_count(db, Notification.user_id == user_id)
        result = await db.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def list_all(
        self,
        db: AsyncSession,
        *,
        skip: int = 0,
        limit: int = 20,
        status: str | None = None,
    ) -> tuple[list[Notification], int]:
        query = select(Notification)
        count_query = select(func.count()).select_from(Notification)
        if status is not None:
            query = query.where(Notification.status == status)
            count_query = count_query.where(Notification.status == status)

        total_result = await db.execute(count_query)
        total = total_result.scalar_one()

        result = await db.execute(
            query.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def count_unread(self, db: AsyncSession, *, user_id: uuid.UUID) -> int:
        return await self.get_count(
            db,
            Notification.user_id == user_id,
            Notification.status == STATUS_UNREAD,
        )

    async def mark_read(self, db: AsyncSession, *, notification: Notification) -> Notification:
        if notification.status != STATUS_READ:
            notification.status = STATUS_READ
            db.add(notification)
            await db.flush()
        return notification

    async def mark_all_read(self, db: AsyncSession, *, user_id: uuid.UUID) -> int:
        """Mark all unread notifications for a user as read. Returns count updated."""
        result = await db.execute(
            update(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.status == STATUS_UNREAD,
            )
            .values(status=STATUS_READ)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount or 0

    async def delete_read_before(self, db: AsyncSession, *, cutoff: datetime) -> int:
        """Batch-delete read notifications created at or before ``cutoff``."""
        result = await db.execute(
            delete(Notification)
            .where(
                Notification.status == STATUS_READ,
                Notification.created_at <= cutoff,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0


crud_notification = CRUDNotification(Notification)
