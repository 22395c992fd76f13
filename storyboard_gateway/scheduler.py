"""
Scheduled Task Module

Uses APScheduler to run periodic maintenance, currently dropping expired
rate limiter windows.
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from storyboard_gateway.config import get_settings
from storyboard_gateway.middleware.rate_limit import get_rate_limiter

logger = logging.getLogger(__name__)

# Global Scheduler Instance
_scheduler: Optional[AsyncIOScheduler] = None


async def cleanup_rate_limit_windows_task():
    """
    Scheduled Rate Limiter Cleanup Task

    Deletes buckets whose window has passed so idle clients do not
    accumulate in memory.
    """
    try:
        removed = get_rate_limiter().cleanup_expired()
        logger.debug("Rate limiter cleanup completed: %s expired window(s) removed", removed)
    except Exception as e:
        logger.error("Rate limiter cleanup task failed: %s", e, exc_info=True)


def start_scheduler():
    """
    Start Scheduled Task Scheduler

    Initializes the scheduler and adds all scheduled tasks.
    """
    global _scheduler

    if _scheduler is not None:
        logger.warning("Scheduler already started")
        return

    settings = get_settings()

    _scheduler = AsyncIOScheduler()
    _scheduler.add_job(
        cleanup_rate_limit_windows_task,
        trigger=IntervalTrigger(seconds=settings.RATE_LIMIT_CLEANUP_INTERVAL_SECONDS),
        id="cleanup_rate_limit_windows",
        name="Clean up expired rate limit windows",
        replace_existing=True,
    )
    _scheduler.start()

    logger.info(
        "Scheduler started: rate limiter cleanup every %s seconds",
        settings.RATE_LIMIT_CLEANUP_INTERVAL_SECONDS,
    )


def shutdown_scheduler():
    """
    Shutdown Scheduled Task Scheduler

    Gracefully stops all scheduled tasks.
    """
    global _scheduler

    if _scheduler is None:
        return

    _scheduler.shutdown(wait=True)
    _scheduler = None
    logger.info("Scheduler shutdown completed")


def get_scheduler() -> Optional[AsyncIOScheduler]:
    """
    Get Scheduler Instance

    Returns:
        Optional[AsyncIOScheduler]: Scheduler instance or None
    """
    return _scheduler
