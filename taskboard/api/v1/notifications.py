"""
Notification routes.
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from taskboard.core.dependencies import CurrentActor, DBSession
from taskboard.schemas.notification import (
    MarkAllReadResult,
    NotificationPage,
    NotificationRead,
    NotificationStats,
    NotificationStatus,
)
from taskboard.schemas.pagination import PaginatedResponse
from taskboard.services.notification_service import notification_service

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get(
    "/",
    response_model=NotificationPage,
    summary="List my notifications, newest first",
)
async def list_notifications(
    actor: CurrentActor,
    db: DBSession,
    page: int = Query(default=1, ge=1),
    size: int = Query(default=10, ge=1, le=100),
) -> NotificationPage:
    items, total, unread = await notification_service.list_for_user(
        db, user_id=actor.id, page=page, size=size
    )
    return NotificationPage(
        items=[NotificationRead.model_validate(n) for n in items],
        total=total,
        page=page,
        size=size,
        unread_count=unread,
    )


@router.get(
    "/all",
    response_model=PaginatedResponse[NotificationRead],
    summary="List every user's notifications (admin only)",
)
async def list_all_notifications(
    actor: CurrentActor,
    db: DBSession,
    page: int = Query(default=1, ge=1),
    size: int = Query(default=20, ge=1, le=100),
    status_filter: NotificationStatus | None = Query(default=None, alias="status"),
) -> PaginatedResponse[NotificationRead]:
    items, total = await notification_service.list_all(
        db, actor=actor, page=page, size=size, status=status_filter
    )
    return PaginatedResponse(
        items=[NotificationRead.model_validate(n) for n in items],
        total=total,
        page=page,
        size=size,
    )


@router.get(
    "/stats",
    response_model=NotificationStats,
    summary="Count my notifications by status",
)
async def notification_stats(actor: CurrentActor, db: DBSession) -> NotificationStats:
    return NotificationStats(**await notification_service.stats(db, user_id=actor.id))


@router.put(
    "/read-all",
    response_model=MarkAllReadResult,
    summary="Mark all my notifications as read",
)
async def mark_all_read(actor: CurrentActor, db: DBSession) -> MarkAllReadResult:
    updated = await notification_service.mark_all_read(db, actor=actor)
    return MarkAllReadResult(updated=updated)


@router.put(
    "/{notification_id}/read",
    response_model=NotificationRead,
    summary="Mark a notification as read",
)
async def mark_as_read(
    notification_id: uuid.UUID,
    actor: CurrentActor,
    db: DBSession,
) -> NotificationRead:
    notification = await notification_service.mark_read(
        db, notification_id=notification_id, actor=actor
    )
    return NotificationRead.model_validate(notification)


@router.delete(
    "/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a notification",
)
async def delete_notification(
    notification_id: uuid.UUID,
    actor: CurrentActor,
    db: DBSession,
) -> None:
    await notification_service.delete(db, notification_id=notification_id, actor=actor)
