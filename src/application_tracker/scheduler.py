import logging
from typing import Callable

from apscheduler.schedulers.base import BaseScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)

JOB_ID = "daily_scan"
DEFAULT_HOUR = 9


def build_scheduler(timezone) -> BlockingScheduler:
    return BlockingScheduler(timezone=timezone)


def disable_auto_scan(scheduler: BaseScheduler) -> bool:
    """Remove the daily scan job; returns whether one was registered."""
    if scheduler.get_job(JOB_ID) is None:
        return False
    scheduler.remove_job(JOB_ID)
    logger.info("Auto-scan disabled")
    return True


def enable_auto_scan(scheduler: BaseScheduler, func: Callable[[], object], hour: int = DEFAULT_HOUR, timezone=None):
    """Register `func` to run once a day at `hour`:00.

    Any existing daily job is removed first, so calling this repeatedly
    leaves exactly one job behind.
    """
    if not 0 <= hour <= 23:
        raise ValueError(f"hour must be between 0 and 23, got {hour}")
    disable_auto_scan(scheduler)
    job = scheduler.add_job(
        func,
        CronTrigger(hour=hour, minute=0, timezone=timezone or scheduler.timezone),
        id=JOB_ID,
        name="Daily application scan",
        coalesce=True,
        max_instances=1,
    )
    logger.info("Auto-scan enabled daily at %02d:00", hour)
    return job
