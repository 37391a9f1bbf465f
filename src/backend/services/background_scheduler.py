"""
Background Scheduler Service

Manages scheduled background tasks using APScheduler:
- Product metadata enrichment (every ENRICHMENT_SCHEDULE_MINUTES)

This runs in-process with the FastAPI application. Scheduling is disabled
when ENRICHMENT_SCHEDULE_MINUTES is 0; the admin API can still trigger a
batch on demand.
"""

import logging
from datetime import timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from core.config import settings
from repositories.provider import ProductVoteRepositoryProtocol
from services.cache_service import CacheService

logger = logging.getLogger(__name__)

ENRICHMENT_JOB_ID = "product_vote_enrichment"

# Global scheduler instance
_scheduler: AsyncIOScheduler | None = None


async def enrichment_job(
    repository: ProductVoteRepositoryProtocol,
    cache: Optional[CacheService] = None,
) -> None:
    """
    Background job to backfill names for unnamed product vote records.

    Failures are logged and left for the next run.
    """
    from services.enrichment_service import run_enrichment_batch

    logger.info("Starting product enrichment job...")

    try:
        result = await run_enrichment_batch(repository, cache)
        logger.info(
            f"Product enrichment completed: "
            f"processed={result.processed}, "
            f"enriched={result.enriched}, "
            f"remaining={result.remaining}"
        )
    except Exception as e:
        logger.error(f"Product enrichment job failed: {e}", exc_info=True)


def get_scheduler() -> AsyncIOScheduler:
    """Get the global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler(timezone=timezone.utc)
    return _scheduler


async def start_scheduler(
    repository: ProductVoteRepositoryProtocol,
    cache: Optional[CacheService] = None,
) -> bool:
    """
    Start the background scheduler.

    Returns False without starting anything when no job is scheduled.
    """
    interval_minutes = settings.ENRICHMENT_SCHEDULE_MINUTES
    if interval_minutes <= 0:
        logger.info("Product enrichment schedule disabled")
        return False

    scheduler = get_scheduler()

    if scheduler.running:
        logger.info("Scheduler already running")
        return True

    scheduler.add_job(
        enrichment_job,
        trigger=IntervalTrigger(minutes=interval_minutes),
        kwargs={"repository": repository, "cache": cache},
        id=ENRICHMENT_JOB_ID,
        name="Product Enrichment",
        replace_existing=True,
        max_instances=1,
    )
    logger.info(f"Added product enrichment job (every {interval_minutes} minutes)")

    scheduler.start()
    logger.info("Background scheduler started")
    return True


async def stop_scheduler() -> None:
    """Stop the background scheduler gracefully."""
    global _scheduler

    if _scheduler and _scheduler.running:
        logger.info("Stopping background scheduler...")
        _scheduler.shutdown(wait=True)
        logger.info("Background scheduler stopped")

    _scheduler = None
