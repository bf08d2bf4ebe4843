"""
Background job scheduler.
Registers the daily cleanup sweep with APScheduler on the application's event loop.
"""
from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from taskboard.core.config import settings
from taskboard.db.session import AsyncSessionLocal
from taskboard.services.cleanup_service import CleanupSweep

logger = logging.getLogger(__name__)

CLEANUP_JOB_ID = "daily_cleanup_sweep"

cleanup_sweep = CleanupSweep(AsyncSessionLocal)


def create_scheduler(sweep: CleanupSweep = cleanup_sweep) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        sweep.run,
        trigger=CronTrigger(
            hour=settings.SWEEP_CRON_HOUR,
            minute=settings.SWEEP_CRON_MINUTE,
            timezone="UTC",
        ),
        id=CLEANUP_JOB_ID,
        name="Purge expired accounts and read notifications",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    return scheduler


def start_scheduler(scheduler: AsyncIOScheduler) -> None:
    scheduler.start()
    logger.info(
        "Cleanup scheduler started (daily at %02d:%02d UTC)",
        settings.SWEEP_CRON_HOUR,
        settings.SWEEP_CRON_MINUTE,
    )


def shutdown_scheduler(scheduler: AsyncIOScheduler) -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Cleanup scheduler stopped")
