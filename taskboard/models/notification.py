"""
Notification ORM model.
In-app notifications for a single recipient, optionally pointing at the task
that triggered them.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from taskboard.db.base import Base, utcnow

STATUS_UNREAD = "unread"
STATUS_READ = "read"


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(String(1000), nullable=False)
    status: Mapped[str] = mapped_column(
        Enum(STATUS_UNREAD, STATUS_READ, name="notification_status_enum"),
        nullable=False,
        default=STATUS_UNREAD,
        server_default=STATUS_UNREAD,
    )
    # Not a foreign key: the notification outlives a deleted task.
    task_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_notifications_user_id", "user_id"),
        Index("ix_notifications_user_status", "user_id", "status"),
        Index("ix_notifications_status_created_at", "status", "created_at"),
    )

    @property
    def is_read(self) -> bool:
        return self.status == STATUS_READ

    def __repr__(self) -> str:
        return f"<Notification id={self.id} user_id={self.user_id} status={self.status}>"
