"""
User ORM model.
Stores authentication credentials, profile data, role, and the
soft-delete marker used by the account lifecycle.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskboard.db.base import Base, utcnow
from taskboard.models.task import task_assignees


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        Enum("admin", "member", name="user_role_enum"),
        nullable=False,
        default="member",
        server_default="member",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default="true"
    )
    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    # Set while the account awaits purge; always paired with is_active=False.
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    # ── Relationships ─────────────────────────────────────────────────────────
    assigned_tasks: Mapped[list["Task"]] = relationship(  # type: ignore[name-defined]  # noqa: F821
        "Task",
        secondary=task_assignees,
        back_populates="assignees",
    )

    __table_args__ = (
        Index("ix_users_role", "role"),
        Index("ix_users_deleted_at", "deleted_at"),
    )

    @property
    def is_pending_deletion(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} role={self.role}>"
