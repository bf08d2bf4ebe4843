"""
Daily cleanup sweep.
Runs the account purge and the notification purge in one session per purge.
A tick that arrives while the previous run is still going is skipped.
"""
from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskboard.db.base import utcnow
from taskboard.services.account_service import purge_expired_accounts
from taskboard.services.notification_service import purge_expired_notifications

logger = logging.getLogger(__name__)

PurgeFn = Callable[[AsyncSession, datetime], Awaitable[int]]


@dataclass
class SweepResult:
    accounts_deleted: int = 0
    notifications_deleted: int = 0
    skipped: bool = False


class CleanupSweep:

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def _run_one(self, name: str, purge: PurgeFn, now: datetime) -> int:
        try:
            async with self._session_factory() as session:
                deleted = await purge(session, now)
                await session.commit()
                return deleted
        except Exception:
            logger.exception("%s cleanup failed", name)
            return 0

    async def run(self) -> SweepResult:
        """Run both purges against the clock's current time. Never raises."""
        if self._running:
            logger.warning("Cleanup sweep already in progress; skipping this run")
            return SweepResult(skipped=True)

        self._running = True
        try:
            now = self._clock()
            result = SweepResult(
                accounts_deleted=await self._run_one("User", purge_expired_accounts, now),
                notifications_deleted=await self._run_one(
                    "Notification", purge_expired_notifications, now
                ),
            )
        finally:
            self._running = False

        logger.info(
            "Cleanup sweep finished: users=%d notifications=%d",
            result.accounts_deleted,
            result.notifications_deleted,
        )
        return result
