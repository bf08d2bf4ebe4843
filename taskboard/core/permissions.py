"""
Authorization predicates.

Every service operation receives an explicit ``Actor`` instead of reading the
request user, and asks one of these predicates whether it may proceed. Routes
never compare roles or ids themselves.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from taskboard.models.notification import Notification
    from taskboard.models.task import Task
    from taskboard.models.user import User

ROLE_ADMIN = "admin"
ROLE_MEMBER = "member"


@dataclass(frozen=True)
class Actor:
    """The authenticated account performing an operation."""

    id: uuid.UUID
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @classmethod
    def from_user(cls, user: "User") -> "Actor":
        return cls(id=user.id, role=user.role)


# ── Accounts ──────────────────────────────────────────────────────────────────

def can_soft_delete(actor: Actor, target_id: uuid.UUID) -> bool:
    """Admins may mark any account but their own for deletion."""
    return actor.is_admin and actor.id != target_id


def can_restore(actor: Actor) -> bool:
    return actor.is_admin


def can_update_status(actor: Actor, target_id: uuid.UUID) -> bool:
    """Admins may change any role or active flag except their own."""
    return actor.is_admin and actor.id != target_id


# ── Notifications ─────────────────────────────────────────────────────────────

def can_manage_notification(actor: Actor, notification: "Notification") -> bool:
    """Recipient or admin may read or delete a notification."""
    return actor.is_admin or notification.user_id == actor.id


def can_list_all_notifications(actor: Actor) -> bool:
    return actor.is_admin


# ── Tasks ─────────────────────────────────────────────────────────────────────

def can_manage_tasks(actor: Actor) -> bool:
    """Create, edit, delete tasks and manage their attachments."""
    return actor.is_admin


def is_assignee(actor: Actor, task: "Task") -> bool:
    return any(user.id == actor.id for user in task.assignees)


def can_view_task(actor: Actor, task: "Task") -> bool:
    return actor.is_admin or is_assignee(actor, task)


def can_update_progress(actor: Actor, task: "Task") -> bool:
    """Status and checklist changes are open to assignees as well as admins."""
    return actor.is_admin or is_assignee(actor, task)
