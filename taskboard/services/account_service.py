"""
Account lifecycle service.

Active → PendingDeletion (soft delete) → Active (restore within the window)
or Purged (daily sweep once the window has passed).

Soft delete and restore are not serialized against each other; two admins
acting on one account at once resolve as last write wins.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.core.config import settings
from taskboard.core.exceptions import (
    ConflictException,
    ExpiredException,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
)
from taskboard.core.permissions import (
    Actor,
    can_restore,
    can_soft_delete,
    can_update_status,
)
from taskboard.crud.user import crud_user
from taskboard.db.base import as_utc, utcnow
from taskboard.models.user import User
from taskboard.schemas.user import UserStatusUpdate

logger = logging.getLogger(__name__)


def restore_window() -> timedelta:
    return timedelta(days=settings.ACCOUNT_RESTORE_WINDOW_DAYS)


def within_restore_window(deleted_at: datetime, now: datetime) -> bool:
    """True while ``now - deleted_at`` has not exceeded the restore window."""
    return as_utc(now) - as_utc(deleted_at) <= restore_window()


class AccountService:

    async def _get_or_404(self, db: AsyncSession, account_id: uuid.UUID) -> User:
        user = await crud_user.get(db, account_id)
        if user is None:
            raise NotFoundException("User", str(account_id))
        return user

    async def soft_delete(
        self,
        db: AsyncSession,
        *,
        account_id: uuid.UUID,
        actor: Actor,
        now: datetime | None = None,
    ) -> User:
        """Mark an account for deletion. Task assignments are left in place."""
        user = await self._get_or_404(db, account_id)
        if not can_soft_delete(actor, account_id):
            if actor.id == account_id:
                raise ForbiddenException("Cannot delete your own account")
            raise ForbiddenException("Admin privileges required")
        if user.is_pending_deletion:
            raise ConflictException("User is already marked for deletion")

        updated = await crud_user.update(
            db,
            db_obj=user,
            obj_in={"is_active": False, "deleted_at": now or utcnow()},
        )
        logger.info("User %s marked for deletion by %s", account_id, actor.id)
        return updated

    async def restore(
        self,
        db: AsyncSession,
        *,
        account_id: uuid.UUID,
        actor: Actor,
        now: datetime | None = None,
    ) -> User:
        """
        Bring a pending-deletion account back.
        Past the window the account stays pending and will still be purged.
        """
        user = await self._get_or_404(db, account_id)
        if not can_restore(actor):
            raise ForbiddenException("Admin privileges required")
        if user.deleted_at is None:
            raise InvalidStateException("User is not marked for deletion")
        if not within_restore_window(user.deleted_at, now or utcnow()):
            raise ExpiredException(
                "Cannot restore user: "
                f"{settings.ACCOUNT_RESTORE_WINDOW_DAYS}-day restoration period has expired"
            )

        restored = await crud_user.update(
            db, db_obj=user, obj_in={"is_active": True, "deleted_at": None}
        )
        logger.info("User %s restored by %s", account_id, actor.id)
        return restored

    async def update_status(
        self,
        db: AsyncSession,
        *,
        account_id: uuid.UUID,
        status_in: UserStatusUpdate,
        actor: Actor,
    ) -> User:
        """Change role and/or active flag. Pending-deletion accounts must be restored first."""
        user = await self._get_or_404(db, account_id)
        if not can_update_status(actor, account_id):
            if actor.is_admin:
                raise ForbiddenException("You cannot change your own role or status")
            raise ForbiddenException("Admin privileges required")
        if user.is_pending_deletion:
            raise ConflictException("Cannot update a user marked for deletion")
        return await crud_user.update(
            db, db_obj=user, obj_in=status_in.model_dump(exclude_unset=True, exclude_none=True)
        )

    async def purge_expired(self, db: AsyncSession, *, now: datetime | None = None) -> int:
        """
        Permanently remove every account with ``deleted_at <= now - window``.

        Each account is removed in its own savepoint; one that fails is logged
        and skipped. Never raises. Returns the number of accounts removed.
        """
        cutoff = (now or utcnow()) - restore_window()
        try:
            candidate_ids = await crud_user.list_purge_candidate_ids(db, cutoff=cutoff)
        except SQLAlchemyError as exc:
            logger.error("User cleanup could not load candidates: %s", exc)
            return 0

        deleted = 0
        for user_id in candidate_ids:
            try:
                async with db.begin_nested():
                    deleted += await crud_user.hard_delete(db, user_id=user_id)
            except SQLAlchemyError as exc:
                logger.error("Failed to purge user %s: %s", user_id, exc)
        logger.info("Permanently deleted %d users", deleted)
        return deleted


account_service = AccountService()


async def purge_expired_accounts(db: AsyncSession, now: datetime) -> int:
    """Sweep entry point: remove accounts whose restore window has passed."""
    return await account_service.purge_expired(db, now=now)
