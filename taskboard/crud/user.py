"""
User CRUD operations.
Extends CRUDBase with user-specific queries, including the purge helpers
used by the account cleanup sweep.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.crud.base import CRUDBase
from taskboard.models.notification import Notification
from taskboard.models.task import Task, task_assignees
from taskboard.models.user import User


class CRUDUser(CRUDBase[User]):

    async def get_by_email(self, db: AsyncSession, email: str) -> User | None:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def get_many(self, db: AsyncSession, ids: list[uuid.UUID]) -> list[User]:
        if not ids:
            return []
        result = await db.execute(select(User).where(User.id.in_(ids)))
        return list(result.scalars().all())

    async def create_user(
        self,
        db: AsyncSession,
        *,
        name: str,
        email: str,
        hashed_password: str,
        role: str = "member",
        avatar_url: str | None = None,
    ) -> User:
        user = User(
            name=name,
            email=email,
            hashed_password=hashed_password,
            role=role,
            avatar_url=avatar_url,
        )
        db.add(user)
        await db.flush()
        return user

    async def list_users(
        self,
        db: AsyncSession,
        *,
        skip: int = 0,
        limit: int = 20,
        search: str | None = None,
    ) -> tuple[list[User], int]:
        query = select(User)
        count_query = select(func.count()).select_from(User)

        if search:
            name_filter = User.name.ilike(f"%{search}%")
            query = query.where(name_filter)
            count_query = count_query.where(name_filter)

        total_result = await db.execute(count_query)
        total = total_result.scalar_one()

        result = await db.execute(
            query.order_by(User.created_at.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all()), total

    async def task_counts_by_status(
        self, db: AsyncSession, *, user_ids: list[uuid.UUID]
    ) -> dict[uuid.UUID, dict[str, int]]:
        """Return ``{user_id: {status: count}}`` over the tasks assigned to each user."""
        if not user_ids:
            return {}
        result = await db.execute(
            select(task_assignees.c.user_id, Task.status, func.count(Task.id))
            .join(Task, Task.id == task_assignees.c.task_id)
            .where(task_assignees.c.user_id.in_(user_ids))
            .group_by(task_assignees.c.user_id, Task.status)
        )
        counts: dict[uuid.UUID, dict[str, int]] = {}
        for user_id, status, count in result.all():
            counts.setdefault(user_id, {})[status] = count
        return counts

    # ── Purge helpers ─────────────────────────────────────────────────────────

    async def list_purge_candidate_ids(
        self, db: AsyncSession, *, cutoff: datetime
    ) -> list[uuid.UUID]:
        """Ids of accounts soft-deleted at or before ``cutoff``."""
        result = await db.execute(
            select(User.id).where(
                User.deleted_at.is_not(None),
                User.deleted_at <= cutoff,
            )
        )
        return list(result.scalars().all())

    async def hard_delete(self, db: AsyncSession, *, user_id: uuid.UUID) -> int:
        """
        Permanently remove an account with its assignments and notifications.
        Tasks it created are kept with no creator. Returns rows removed from users.
        """
        await db.execute(
            delete(task_assignees).where(task_assignees.c.user_id == user_id)
        )
        await db.execute(delete(Notification).where(Notification.user_id == user_id))
        await db.execute(
            update(Task).where(Task.created_by_id == user_id).values(created_by_id=None)
        )
        result = await db.execute(delete(User).where(User.id == user_id))
        return result.rowcount or 0


crud_user = CRUDUser(User)
