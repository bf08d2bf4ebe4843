"""
User Pydantic schemas.
Covers registration, login, profile reads/updates, and admin status changes.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field, model_validator

UserRole = Literal["admin", "member"]


# ── Create ────────────────────────────────────────────────────────────────────

class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    avatar_url: str | None = Field(default=None, max_length=500)
    admin_invite_token: str | None = None


# ── Update ────────────────────────────────────────────────────────────────────

class UserUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    avatar_url: str | None = Field(default=None, max_length=500)


class UserStatusUpdate(BaseModel):
    """Admin-only role / activation change."""

    role: UserRole | None = None
    is_active: bool | None = None

    @model_validator(mode="after")
    def require_a_field(self) -> "UserStatusUpdate":
        if self.role is None and self.is_active is None:
            raise ValueError("Provide at least one of 'role' or 'is_active'")
        return self


# ── Read ──────────────────────────────────────────────────────────────────────

class UserRead(BaseModel):
    id: uuid.UUID
    name: str
    email: EmailStr
    role: str
    is_active: bool
    avatar_url: str | None
    deleted_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserReadPublic(BaseModel):
    """Minimal public profile, safe to embed in task responses."""

    id: uuid.UUID
    name: str
    email: EmailStr
    avatar_url: str | None

    model_config = {"from_attributes": True}


class UserWithTaskCounts(UserRead):
    pending_tasks: int = 0
    in_progress_tasks: int = 0
    completed_tasks: int = 0


class LifecycleResult(BaseModel):
    message: str
    user: UserRead


# ── Auth ──────────────────────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead
