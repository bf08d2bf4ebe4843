"""
User routes.
Profile (GET/PUT /users/me), lookups, and the admin account lifecycle:
status update, soft delete, restore.
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query

from taskboard.core.config import settings
from taskboard.core.dependencies import AdminUser, CurrentActor, CurrentUser, DBSession
from taskboard.core.exceptions import NotFoundException
from taskboard.crud.user import crud_user
from taskboard.schemas.pagination import PaginatedResponse, page_offset
from taskboard.schemas.user import (
    LifecycleResult,
    UserRead,
    UserStatusUpdate,
    UserUpdate,
    UserWithTaskCounts,
)
from taskboard.services.account_service import account_service

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserRead, summary="Get current user profile")
async def get_me(current_user: CurrentUser) -> UserRead:
    return UserRead.model_validate(current_user)


@router.put("/me", response_model=UserRead, summary="Update current user profile")
async def update_me(
    user_in: UserUpdate,
    current_user: CurrentUser,
    db: DBSession,
) -> UserRead:
    updated = await crud_user.update(
        db,
        db_obj=current_user,
        obj_in=user_in.model_dump(exclude_unset=True, exclude_none=True),
    )
    return UserRead.model_validate(updated)


@router.get(
    "/",
    response_model=PaginatedResponse[UserWithTaskCounts],
    summary="List users with their task counts (admin only)",
)
async def list_users(
    _admin: AdminUser,
    db: DBSession,
    page: int = Query(default=1, ge=1),
    size: int = Query(default=20, ge=1, le=100),
    search: str | None = Query(default=None, max_length=200),
) -> PaginatedResponse[UserWithTaskCounts]:
    users, total = await crud_user.list_users(
        db, skip=page_offset(page, size), limit=size, search=search
    )
    counts = await crud_user.task_counts_by_status(db, user_ids=[u.id for u in users])

    items = []
    for user in users:
        user_counts = counts.get(user.id, {})
        items.append(
            UserWithTaskCounts(
                **UserRead.model_validate(user).model_dump(),
                pending_tasks=user_counts.get("pending", 0),
                in_progress_tasks=user_counts.get("in_progress", 0),
                completed_tasks=user_counts.get("completed", 0),
            )
        )
    return PaginatedResponse(items=items, total=total, page=page, size=size)


@router.get("/{user_id}", response_model=UserRead, summary="Get user by ID")
async def get_user(
    user_id: uuid.UUID,
    _current_user: CurrentUser,
    db: DBSession,
) -> UserRead:
    user = await crud_user.get(db, user_id)
    if user is None:
        raise NotFoundException("User", str(user_id))
    return UserRead.model_validate(user)


@router.patch(
    "/{user_id}/status",
    response_model=UserRead,
    summary="Update user role/active flag (admin only)",
)
async def update_user_status(
    user_id: uuid.UUID,
    status_in: UserStatusUpdate,
    _admin: AdminUser,
    actor: CurrentActor,
    db: DBSession,
) -> UserRead:
    user = await account_service.update_status(
        db, account_id=user_id, status_in=status_in, actor=actor
    )
    return UserRead.model_validate(user)


@router.delete(
    "/{user_id}",
    response_model=LifecycleResult,
    summary="Mark a user for deletion (admin only)",
)
async def delete_user(
    user_id: uuid.UUID,
    _admin: AdminUser,
    actor: CurrentActor,
    db: DBSession,
) -> LifecycleResult:
    user = await account_service.soft_delete(db, account_id=user_id, actor=actor)
    return LifecycleResult(
        message=(
            "User marked for deletion. Will be permanently deleted after "
            f"{settings.ACCOUNT_RESTORE_WINDOW_DAYS} days."
        ),
        user=UserRead.model_validate(user),
    )


@router.put(
    "/{user_id}/restore",
    response_model=LifecycleResult,
    summary="Restore a user marked for deletion (admin only)",
)
async def restore_user(
    user_id: uuid.UUID,
    _admin: AdminUser,
    actor: CurrentActor,
    db: DBSession,
) -> LifecycleResult:
    user = await account_service.restore(db, account_id=user_id, actor=actor)
    return LifecycleResult(
        message="User restored successfully",
        user=UserRead.model_validate(user),
    )
