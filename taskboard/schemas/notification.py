"""
Notification Pydantic schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from taskboard.schemas.pagination import PaginatedResponse

NotificationStatus = Literal["unread", "read"]


class NotificationRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    title: str
    message: str
    status: str
    task_id: uuid.UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationPage(PaginatedResponse[NotificationRead]):
    """A page of notifications plus the recipient's live unread count."""

    unread_count: int


class NotificationStats(BaseModel):
    total: int
    unread: int
    read: int


class MarkAllReadResult(BaseModel):
    updated: int
