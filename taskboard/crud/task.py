"""
Task CRUD operations.
Extends CRUDBase with assignee-scoped listing, checklist replacement,
and the aggregate queries behind the dashboards.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.crud.base import CRUDBase
from taskboard.models.attachment import Attachment
from taskboard.models.task import Task, task_assignees
from taskboard.models.todo_item import TodoItem
from taskboard.models.user import User
from taskboard.schemas.task import TodoItemIn


class CRUDTask(CRUDBase[Task]):

    def _assigned_to(self, user_id: uuid.UUID) -> Any:
        return Task.id.in_(
            select(task_assignees.c.task_id).where(task_assignees.c.user_id == user_id)
        )

    async def create_task(
        self,
        db: AsyncSession,
        *,
        title: str,
        description: str | None,
        priority: str,
        due_date: datetime,
        created_by: User,
        assignees: list[User],
        checklist: list[TodoItemIn],
    ) -> Task:
        task = Task(
            title=title,
            description=description,
            priority=priority,
            due_date=due_date,
            created_by=created_by,
            assignees=assignees,
            checklist=self.build_checklist(checklist),
            attachments=[],
        )
        db.add(task)
        await db.flush()
        return task

    @staticmethod
    def build_checklist(items: list[TodoItemIn]) -> list[TodoItem]:
        return [
            TodoItem(text=item.text, completed=item.completed, position=index)
            for index, item in enumerate(items)
        ]

    async def list_tasks(
        self,
        db: AsyncSession,
        *,
        status: str | None = None,
        assignee_id: uuid.UUID | None = None,
    ) -> list[Task]:
        """All tasks, or only those assigned to ``assignee_id``; newest first."""
        query = select(Task)
        if assignee_id is not None:
            query = query.where(self._assigned_to(assignee_id))
        if status is not None:
            query = query.where(Task.status == status)
        result = await db.execute(query.order_by(Task.created_at.desc()))
        return list(result.scalars().all())

    async def count_by_status(
        self, db: AsyncSession, *, assignee_id: uuid.UUID | None = None
    ) -> dict[str, int]:
        query = select(Task.status, func.count(Task.id)).group_by(Task.status)
        if assignee_id is not None:
            query = query.where(self._assigned_to(assignee_id))
        result = await db.execute(query)
        return {row[0]: row[1] for row in result.all()}

    async def count_by_priority(
        self, db: AsyncSession, *, assignee_id: uuid.UUID | None = None
    ) -> dict[str, int]:
        query = select(Task.priority, func.count(Task.id)).group_by(Task.priority)
        if assignee_id is not None:
            query = query.where(self._assigned_to(assignee_id))
        result = await db.execute(query)
        return {row[0]: row[1] for row in result.all()}

    async def count_overdue(
        self,
        db: AsyncSession,
        *,
        now: datetime,
        assignee_id: uuid.UUID | None = None,
    ) -> int:
        where = [Task.status != "completed", Task.due_date < now]
        if assignee_id is not None:
            where.append(self._assigned_to(assignee_id))
        return await self.get_count(db, *where)

    async def recent(
        self,
        db: AsyncSession,
        *,
        limit: int = 10,
        assignee_id: uuid.UUID | None = None,
    ) -> list[Task]:
        query = select(Task)
        if assignee_id is not None:
            query = query.where(self._assigned_to(assignee_id))
        result = await db.execute(query.order_by(Task.created_at.desc()).limit(limit))
        return list(result.scalars().all())

    async def add_attachment(
        self,
        db: AsyncSession,
        *,
        task: Task,
        public_id: str,
        url: str,
        filename: str,
        file_type: str,
        size: int | None,
    ) -> Attachment:
        attachment = Attachment(
            public_id=public_id,
            url=url,
            filename=filename,
            file_type=file_type,
            size=size,
        )
        task.attachments.append(attachment)
        await db.flush()
        return attachment


crud_task = CRUDTask(Task)
