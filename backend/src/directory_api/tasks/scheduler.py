"""Background task scheduler using APScheduler."""

import logging
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from directory_api.config import get_settings
from directory_api.utils.secure_logging import log_error

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler: AsyncIOScheduler | None = None


async def sync_due_tenants_job() -> None:
    """Background job to sync every tenant whose sync interval has elapsed."""
    from directory_api.database import get_session_maker
    from directory_api.services.sync_service import SyncService

    logger.info("Starting scheduled sync of due tenants")

    try:
        service = SyncService(get_session_maker())
        await service.recover_stale_locks()
        results = await service.sync_all_tenants(due_only=True)
        failed = sorted(domain for domain, result in results.items() if not result.success)
        logger.info(f"Scheduled sync completed: {len(results)} tenants, {len(failed)} failed")
        if failed:
            logger.warning(f"Scheduled sync failed for tenants: {', '.join(failed)}")
    except Exception as e:
        log_error(logger, "Scheduled sync failed", e)


async def start_scheduler() -> None:
    """Start the background task scheduler."""
    global _scheduler

    settings = get_settings()
    if not settings.sync_scheduler_enabled:
        logger.info("Background scheduler disabled")
        return

    _scheduler = AsyncIOScheduler()

    # Tenants decide their own cadence; this only polls for due ones
    _scheduler.add_job(
        sync_due_tenants_job,
        trigger=IntervalTrigger(minutes=settings.sync_scheduler_interval_minutes),
        id="sync_due_tenants",
        name="Sync due tenants",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.now(),
    )

    _scheduler.start()
    logger.info("Background scheduler started")


async def stop_scheduler() -> None:
    """Stop the background task scheduler."""
    global _scheduler

    if _scheduler:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Background scheduler stopped")
