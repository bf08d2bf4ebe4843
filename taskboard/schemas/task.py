"""
Task Pydantic schemas.
Includes create/update/read variants, checklist and status payloads,
and the dashboard aggregates.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from taskboard.schemas.user import UserReadPublic

TaskStatus = Literal["pending", "in_progress", "completed"]
TaskPriority = Literal["low", "medium", "high"]


# ── Checklist ─────────────────────────────────────────────────────────────────

class TodoItemIn(BaseModel):
    text: str = Field(min_length=1, max_length=500)
    completed: bool = False


class TodoItemRead(BaseModel):
    id: uuid.UUID
    text: str
    completed: bool

    model_config = {"from_attributes": True}


class ChecklistUpdate(BaseModel):
    todo_checklist: list[TodoItemIn] = Field(max_length=200)


# ── Create ────────────────────────────────────────────────────────────────────

class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=10000)
    priority: TaskPriority = "medium"
    due_date: datetime
    assigned_to: list[uuid.UUID] = Field(default_factory=list, max_length=100)
    todo_checklist: list[TodoItemIn] = Field(default_factory=list, max_length=200)


# ── Update ────────────────────────────────────────────────────────────────────

class TaskUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    priority: TaskPriority | None = None
    status: TaskStatus | None = None
    due_date: datetime | None = None
    assigned_to: list[uuid.UUID] | None = Field(default=None, max_length=100)
    todo_checklist: list[TodoItemIn] | None = Field(default=None, max_length=200)


class TaskStatusUpdate(BaseModel):
    status: TaskStatus


# ── Read ──────────────────────────────────────────────────────────────────────

class AttachmentRead(BaseModel):
    id: uuid.UUID
    public_id: str
    url: str
    filename: str
    file_type: str
    size: int | None
    created_at: datetime

    model_config = {"from_attributes": True}


class TaskRead(BaseModel):
    id: uuid.UUID
    title: str
    description: str | None
    priority: str
    status: str
    due_date: datetime
    progress: int
    created_by_id: uuid.UUID | None
    created_at: datetime
    updated_at: datetime
    created_by: UserReadPublic | None = None
    assignees: list[UserReadPublic] = []
    checklist: list[TodoItemRead] = []
    attachments: list[AttachmentRead] = []
    completed_todo_count: int = 0

    model_config = {"from_attributes": True}


class StatusSummary(BaseModel):
    all: int
    pending: int
    in_progress: int
    completed: int


class TaskList(BaseModel):
    items: list[TaskRead]
    status_summary: StatusSummary


# ── Dashboard ─────────────────────────────────────────────────────────────────

class RecentTask(BaseModel):
    id: uuid.UUID
    title: str
    status: str
    priority: str
    due_date: datetime
    created_at: datetime

    model_config = {"from_attributes": True}


class DashboardStatistics(BaseModel):
    total_tasks: int
    pending_tasks: int
    completed_tasks: int
    overdue_tasks: int


class DashboardCharts(BaseModel):
    task_distribution: dict[str, int]
    task_priority_levels: dict[str, int]


class Dashboard(BaseModel):
    statistics: DashboardStatistics
    charts: DashboardCharts
    recent_tasks: list[RecentTask]
