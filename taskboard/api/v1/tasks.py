"""
Task routes.
CRUD, status and checklist progress, attachments, and the dashboards.
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, UploadFile, status

from taskboard.core.config import settings
from taskboard.core.dependencies import AdminUser, CurrentActor, CurrentUser, DBSession
from taskboard.core.exceptions import FileTooLargeException
from taskboard.schemas.task import (
    ChecklistUpdate,
    Dashboard,
    StatusSummary,
    TaskCreate,
    TaskList,
    TaskRead,
    TaskStatus,
    TaskStatusUpdate,
    TaskUpdate,
)
from taskboard.services.task_service import task_service

router = APIRouter(prefix="/tasks", tags=["Tasks"])


@router.get(
    "/",
    response_model=TaskList,
    summary="List visible tasks with a status summary",
)
async def list_tasks(
    actor: CurrentActor,
    db: DBSession,
    status_filter: TaskStatus | None = Query(default=None, alias="status"),
) -> TaskList:
    tasks, summary = await task_service.list_tasks(db, actor=actor, status=status_filter)
    return TaskList(
        items=[TaskRead.model_validate(t) for t in tasks],
        status_summary=StatusSummary(**summary),
    )


@router.post(
    "/",
    response_model=TaskRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new task (admin only)",
)
async def create_task(
    task_in: TaskCreate,
    current_user: AdminUser,
    db: DBSession,
) -> TaskRead:
    task = await task_service.create_task(db, task_in=task_in, current_user=current_user)
    return TaskRead.model_validate(task)


# Dashboard paths are declared before /{task_id} so they are not parsed as ids.

@router.get(
    "/dashboard",
    response_model=Dashboard,
    summary="Organisation-wide dashboard (admin only)",
)
async def admin_dashboard(_admin: AdminUser, db: DBSession) -> Dashboard:
    data = await task_service.dashboard(db)
    return Dashboard.model_validate(data, from_attributes=True)


@router.get(
    "/dashboard/me",
    response_model=Dashboard,
    summary="Dashboard for the tasks assigned to me",
)
async def my_dashboard(current_user: CurrentUser, db: DBSession) -> Dashboard:
    data = await task_service.dashboard(db, assignee_id=current_user.id)
    return Dashboard.model_validate(data, from_attributes=True)


@router.get(
    "/{task_id}",
    response_model=TaskRead,
    summary="Get a task by ID",
)
async def get_task(
    task_id: uuid.UUID,
    actor: CurrentActor,
    db: DBSession,
) -> TaskRead:
    task = await task_service.get_task(db, task_id=task_id, actor=actor)
    return TaskRead.model_validate(task)


@router.put(
    "/{task_id}",
    response_model=TaskRead,
    summary="Update a task (admin only)",
)
async def update_task(
    task_id: uuid.UUID,
    task_in: TaskUpdate,
    current_user: AdminUser,
    db: DBSession,
) -> TaskRead:
    task = await task_service.update_task(
        db, task_id=task_id, task_in=task_in, current_user=current_user
    )
    return TaskRead.model_validate(task)


@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a task (admin only)",
)
async def delete_task(
    task_id: uuid.UUID,
    current_user: AdminUser,
    db: DBSession,
) -> None:
    await task_service.delete_task(db, task_id=task_id, current_user=current_user)


@router.put(
    "/{task_id}/status",
    response_model=TaskRead,
    summary="Change task status (assignee or admin)",
)
async def update_task_status(
    task_id: uuid.UUID,
    status_in: TaskStatusUpdate,
    current_user: CurrentUser,
    db: DBSession,
) -> TaskRead:
    task = await task_service.update_status(
        db, task_id=task_id, status=status_in.status, current_user=current_user
    )
    return TaskRead.model_validate(task)


@router.put(
    "/{task_id}/todo",
    response_model=TaskRead,
    summary="Replace the task checklist (assignee or admin)",
)
async def update_task_checklist(
    task_id: uuid.UUID,
    checklist_in: ChecklistUpdate,
    actor: CurrentActor,
    db: DBSession,
) -> TaskRead:
    task = await task_service.update_checklist(
        db, task_id=task_id, items=checklist_in.todo_checklist, actor=actor
    )
    return TaskRead.model_validate(task)


@router.post(
    "/{task_id}/attachments",
    response_model=TaskRead,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a file attachment to a task (admin only)",
)
async def upload_attachment(
    task_id: uuid.UUID,
    file: UploadFile,
    current_user: AdminUser,
    db: DBSession,
) -> TaskRead:
    content = await file.read()
    if len(content) > settings.max_file_size_bytes:
        raise FileTooLargeException(settings.MAX_FILE_SIZE_MB)

    task = await task_service.add_attachment(
        db,
        task_id=task_id,
        filename=file.filename or "",
        content_type=file.content_type,
        content=content,
        current_user=current_user,
    )
    return TaskRead.model_validate(task)


@router.delete(
    "/{task_id}/attachments/{public_id}",
    response_model=TaskRead,
    summary="Remove an attachment from a task (admin only)",
)
async def delete_attachment(
    task_id: uuid.UUID,
    public_id: str,
    current_user: AdminUser,
    db: DBSession,
) -> TaskRead:
    task = await task_service.remove_attachment(
        db, task_id=task_id, public_id=public_id, current_user=current_user
    )
    return TaskRead.model_validate(task)
