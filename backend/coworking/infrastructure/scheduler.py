"""
Periodic maintenance jobs.

- Expiry sweep every LOCK_SWEEP_INTERVAL_MINUTES
- Full maintenance (locks, drafts, data repair) daily at MAINTENANCE_HOUR
"""

from typing import Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from coworking.core.config import Settings
from coworking.core.logging import get_logger

logger = get_logger(__name__)

# Returns the ReconciliationService bound to the current store
ReconciliationProvider = Callable[[], object]


async def sweep_locks_job(provider: ReconciliationProvider) -> None:
    try:
        await provider().sweep_expired_locks()
    except Exception as e:
        logger.error("lock_sweep_failed", error=str(e), exc_info=True)


async def maintenance_job(provider: ReconciliationProvider) -> None:
    try:
        await provider().run_maintenance()
    except Exception as e:
        logger.error("maintenance_failed", error=str(e), exc_info=True)


def start_scheduler(provider: ReconciliationProvider, settings: Settings) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(timezone=settings.TIMEZONE)

    scheduler.add_job(
        sweep_locks_job,
        trigger=IntervalTrigger(minutes=settings.LOCK_SWEEP_INTERVAL_MINUTES),
        args=[provider],
        id="sweep_expired_locks",
        name="Purge expired locks",
        replace_existing=True,
    )
    scheduler.add_job(
        maintenance_job,
        trigger=CronTrigger(hour=settings.MAINTENANCE_HOUR, minute=0),
        args=[provider],
        id="maintenance",
        name="Nightly maintenance",
        replace_existing=True,
    )

    scheduler.start()
    logger.info(
        "scheduler_started",
        sweep_interval_minutes=settings.LOCK_SWEEP_INTERVAL_MINUTES,
        maintenance_hour=settings.MAINTENANCE_HOUR,
    )
    return scheduler


def stop_scheduler(scheduler: AsyncIOScheduler) -> None:
    scheduler.shutdown(wait=False)
    logger.info("scheduler_stopped")
