"""
Task business logic service.
Enforces admin/assignee rules, derives progress from the checklist, and fans
out notifications to the people a change concerns.
"""
from __future__ import annotations

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.core.exceptions import BadRequestException, ForbiddenException, NotFoundException
from taskboard.core.permissions import (
    Actor,
    can_manage_tasks,
    can_update_progress,
    can_view_task,
)
from taskboard.crud.task import crud_task
from taskboard.crud.user import crud_user
from taskboard.db.base import utcnow
from taskboard.models.task import TASK_PRIORITIES, TASK_STATUSES, Task
from taskboard.models.user import User
from taskboard.schemas.task import TaskCreate, TaskUpdate, TodoItemIn
from taskboard.services.notification_service import notification_service
from taskboard.services.storage import attachment_storage

logger = logging.getLogger(__name__)


def checklist_progress(completed: int, total: int) -> int:
    """Percentage of completed checklist items, rounded half up; 0 for an empty list."""
    if total <= 0:
        return 0
    return int(completed * 100 / total + 0.5)


def status_for_progress(progress: int) -> str:
    if progress >= 100:
        return "completed"
    if progress > 0:
        return "in_progress"
    return "pending"


def apply_checklist_progress(task: Task) -> None:
    """Recompute progress and status from the current checklist."""
    task.progress = checklist_progress(task.completed_todo_count, len(task.checklist))
    task.status = status_for_progress(task.progress)


def apply_status(task: Task, status: str) -> None:
    """Set status directly; completing a task ticks every checklist item."""
    task.status = status
    if status == "completed":
        for item in task.checklist:
            item.completed = True
        task.progress = 100


class TaskService:

    async def _get_or_404(self, db: AsyncSession, task_id: uuid.UUID) -> Task:
        task = await crud_task.get(db, task_id)
        if task is None:
            raise NotFoundException("Task", str(task_id))
        return task

    async def _resolve_assignees(
        self, db: AsyncSession, user_ids: list[uuid.UUID]
    ) -> list[User]:
        unique_ids = list(dict.fromkeys(user_ids))
        users = await crud_user.get_many(db, unique_ids)
        usable = {u.id: u for u in users if u.is_active and not u.is_pending_deletion}
        missing = [str(uid) for uid in unique_ids if uid not in usable]
        if missing:
            raise BadRequestException(
                f"Assignees must be active users; invalid: {', '.join(missing)}"
            )
        return [usable[uid] for uid in unique_ids]

    @staticmethod
    def _assert_manager(actor: Actor) -> None:
        if not can_manage_tasks(actor):
            raise ForbiddenException("Admin privileges required")

    # ── CRUD ──────────────────────────────────────────────────────────────────

    async def create_task(
        self, db: AsyncSession, *, task_in: TaskCreate, current_user: User
    ) -> Task:
        """Create a task and notify its assignees."""
        actor = Actor.from_user(current_user)
        self._assert_manager(actor)
        assignees = await self._resolve_assignees(db, task_in.assigned_to)

        task = await crud_task.create_task(
            db,
            title=task_in.title,
            description=task_in.description,
            priority=task_in.priority,
            due_date=task_in.due_date,
            created_by=current_user,
            assignees=assignees,
            checklist=task_in.todo_checklist,
        )
        if task.checklist:
            apply_checklist_progress(task)
            await db.flush()

        await notification_service.notify_users(
            db,
            recipient_ids=[u.id for u in assignees],
            title="New task assigned",
            message=f"{current_user.name} assigned you to task: {task.title!r}",
            task_id=task.id,
            exclude=actor.id,
        )
        return task

    async def get_task(self, db: AsyncSession, *, task_id: uuid.UUID, actor: Actor) -> Task:
        task = await self._get_or_404(db, task_id)
        if not can_view_task(actor, task):
            raise ForbiddenException("You do not have access to this task")
        return task

    async def list_tasks(
        self, db: AsyncSession, *, actor: Actor, status: str | None = None
    ) -> tuple[list[Task], dict[str, int]]:
        """Admins see every task, members their assigned ones, plus a status summary."""
        assignee_id = None if actor.is_admin else actor.id
        tasks = await crud_task.list_tasks(db, status=status, assignee_id=assignee_id)
        counts = await crud_task.count_by_status(db, assignee_id=assignee_id)
        summary = {name: counts.get(name, 0) for name in TASK_STATUSES}
        summary["all"] = sum(counts.values())
        return tasks, summary

    async def update_task(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        task_in: TaskUpdate,
        current_user: User,
    ) -> Task:
        actor = Actor.from_user(current_user)
        self._assert_manager(actor)
        task = await self._get_or_404(db, task_id)

        data = task_in.model_dump(exclude_unset=True)
        previous_ids = {u.id for u in task.assignees}

        for field in ("title", "description", "priority", "due_date"):
            if field in data and data[field] is not None:
                setattr(task, field, data[field])
        if task_in.assigned_to is not None:
            task.assignees = await self._resolve_assignees(db, task_in.assigned_to)
        if task_in.todo_checklist is not None:
            task.checklist = crud_task.build_checklist(task_in.todo_checklist)
            apply_checklist_progress(task)
        if task_in.status is not None:
            apply_status(task, task_in.status)
        await db.flush()

        current_ids = [u.id for u in task.assignees]
        added = [uid for uid in current_ids if uid not in previous_ids]
        kept = [uid for uid in current_ids if uid in previous_ids]
        await notification_service.notify_users(
            db,
            recipient_ids=added,
            title="New task assigned",
            message=f"{current_user.name} assigned you to task: {task.title!r}",
            task_id=task.id,
            exclude=actor.id,
        )
        await notification_service.notify_users(
            db,
            recipient_ids=kept,
            title="Task updated",
            message=f"{current_user.name} updated task: {task.title!r}",
            task_id=task.id,
            exclude=actor.id,
        )
        return task

    async def delete_task(
        self, db: AsyncSession, *, task_id: uuid.UUID, current_user: User
    ) -> None:
        """Delete a task with its stored attachments and tell its assignees."""
        actor = Actor.from_user(current_user)
        self._assert_manager(actor)
        task = await self._get_or_404(db, task_id)

        title = task.title
        recipients = [u.id for u in task.assignees]
        for attachment in task.attachments:
            attachment_storage.delete(attachment.public_id)
        await crud_task.remove(db, db_obj=task)

        await notification_service.notify_users(
            db,
            recipient_ids=recipients,
            title="Task deleted",
            message=f"{current_user.name} deleted task: {title!r}",
            task_id=task_id,
            exclude=actor.id,
        )

    # ── Progress ──────────────────────────────────────────────────────────────

    async def update_status(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        status: str,
        current_user: User,
    ) -> Task:
        actor = Actor.from_user(current_user)
        task = await self._get_or_404(db, task_id)
        if not can_update_progress(actor, task):
            raise ForbiddenException("Not authorized to update this task")

        previous = task.status
        apply_status(task, status)
        await db.flush()

        if previous != task.status:
            recipients = [u.id for u in task.assignees]
            if task.created_by_id is not None:
                recipients.append(task.created_by_id)
            await notification_service.notify_users(
                db,
                recipient_ids=recipients,
                title="Task status changed",
                message=(
                    f"{current_user.name} moved {task.title!r} "
                    f"from {previous} to {task.status}"
                ),
                task_id=task.id,
                exclude=actor.id,
            )
        return task

    async def update_checklist(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        items: list[TodoItemIn],
        actor: Actor,
    ) -> Task:
        task = await self._get_or_404(db, task_id)
        if not can_update_progress(actor, task):
            raise ForbiddenException("Not authorized to update checklist")

        task.checklist = crud_task.build_checklist(items)
        apply_checklist_progress(task)
        await db.flush()
        return task

    # ── Attachments ───────────────────────────────────────────────────────────

    async def add_attachment(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        filename: str,
        content_type: str | None,
        content: bytes,
        current_user: User,
    ) -> Task:
        actor = Actor.from_user(current_user)
        self._assert_manager(actor)
        task = await self._get_or_404(db, task_id)

        stored = attachment_storage.save(filename, content)
        await crud_task.add_attachment(
            db,
            task=task,
            public_id=stored.public_id,
            url=stored.url,
            filename=filename or "Unnamed file",
            file_type=content_type or "application/octet-stream",
            size=stored.size,
        )
        await notification_service.notify_users(
            db,
            recipient_ids=[u.id for u in task.assignees],
            title="Attachment added",
            message=f"{current_user.name} attached {filename!r} to task: {task.title!r}",
            task_id=task.id,
            exclude=actor.id,
        )
        return task

    async def remove_attachment(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        public_id: str,
        current_user: User,
    ) -> Task:
        actor = Actor.from_user(current_user)
        self._assert_manager(actor)
        task = await self._get_or_404(db, task_id)

        attachment = next((a for a in task.attachments if a.public_id == public_id), None)
        if attachment is None:
            raise NotFoundException("Attachment", public_id)

        attachment_storage.delete(attachment.public_id)
        task.attachments.remove(attachment)
        await db.flush()

        await notification_service.notify_users(
            db,
            recipient_ids=[u.id for u in task.assignees],
            title="Attachment removed",
            message=(
                f"{current_user.name} removed {attachment.filename!r} "
                f"from task: {task.title!r}"
            ),
            task_id=task.id,
            exclude=actor.id,
        )
        return task

    # ── Dashboards ────────────────────────────────────────────────────────────

    async def dashboard(
        self, db: AsyncSession, *, assignee_id: uuid.UUID | None = None
    ) -> dict:
        """Statistics, chart buckets, and the ten newest tasks; scoped to one assignee if given."""
        by_status = await crud_task.count_by_status(db, assignee_id=assignee_id)
        by_priority = await crud_task.count_by_priority(db, assignee_id=assignee_id)
        total = sum(by_status.values())

        distribution = {name: by_status.get(name, 0) for name in TASK_STATUSES}
        distribution["all"] = total

        return {
            "statistics": {
                "total_tasks": total,
                "pending_tasks": by_status.get("pending", 0),
                "completed_tasks": by_status.get("completed", 0),
                "overdue_tasks": await crud_task.count_overdue(
                    db, now=utcnow(), assignee_id=assignee_id
                ),
            },
            "charts": {
                "task_distribution": distribution,
                "task_priority_levels": {
                    name: by_priority.get(name, 0) for name in TASK_PRIORITIES
                },
            },
            "recent_tasks": await crud_task.recent(db, limit=10, assignee_id=assignee_id),
        }


task_service = TaskService()
