"""Background jobs: periodic cache health checks and hot-ticker warm-up."""

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from .cache import CacheService
from .config.logging import get_logger
from .services import MomentumService

logger = get_logger(__name__)

CACHE_HEALTH_JOB_ID = "cache_health_check"
CACHE_WARM_JOB_ID = "cache_warm"


def create_scheduler() -> AsyncIOScheduler:
    """
    Create an AsyncIOScheduler running jobs on the application's event loop.

    Returns:
        Configured AsyncIOScheduler instance
    """
    job_defaults = {
        "coalesce": True,  # Collapse missed runs into one
        "max_instances": 1,  # Only one instance of each job at a time
        "misfire_grace_time": 30,
    }

    scheduler = AsyncIOScheduler(job_defaults=job_defaults, timezone="UTC")
    scheduler.add_listener(job_executed_listener, EVENT_JOB_EXECUTED)
    scheduler.add_listener(job_error_listener, EVENT_JOB_ERROR)
    return scheduler


def job_executed_listener(event):
    """Log successful job executions."""
    logger.debug(
        "Scheduled job executed",
        job_id=event.job_id,
        scheduled_run_time=str(event.scheduled_run_time),
    )


def job_error_listener(event):
    """Log job execution errors."""
    logger.error(
        "Scheduled job failed",
        job_id=event.job_id,
        error=str(event.exception),
        traceback=event.traceback,
    )


def add_cache_health_job(
    scheduler: AsyncIOScheduler, cache: CacheService, interval_seconds: int
) -> None:
    """
    Re-check the distributed tier periodically.

    This is what brings the service back from fallback-only mode once the
    distributed tier is reachable again.
    """
    scheduler.add_job(
        func=cache.health_check,
        trigger="interval",
        seconds=interval_seconds,
        id=CACHE_HEALTH_JOB_ID,
        name="Cache Health Check",
        replace_existing=True,
    )
    logger.info("Added cache health job", interval_seconds=interval_seconds)


def add_cache_warm_job(
    scheduler: AsyncIOScheduler, momentum: MomentumService, interval_minutes: int
) -> None:
    """Refresh hot tickers before their entries expire."""
    scheduler.add_job(
        func=momentum.warm,
        trigger="interval",
        minutes=interval_minutes,
        id=CACHE_WARM_JOB_ID,
        name="Hot Ticker Warm-up",
        replace_existing=True,
    )
    logger.info("Added cache warm job", interval_minutes=interval_minutes)
