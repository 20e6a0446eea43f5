"""
Scheduler module using APScheduler.
Runs the index backfill at configurable intervals so documents written by
older clients pick up cellId/geohash. Can run standalone or next to the API.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from placemap_geo.config import get_settings
from placemap_geo.indexing import backfill_index_keys
from placemap_geo.store import DocumentStore, create_store

logger = logging.getLogger(__name__)

_scheduler: AsyncIOScheduler | None = None


async def _backfill_job(store: DocumentStore):
    """Wrapper that catches exceptions so the scheduler doesn't die on failure."""
    try:
        logger.info("Scheduled index backfill starting...")
        stats = await backfill_index_keys(store)
        logger.info("Scheduled index backfill completed: %s", stats)
    except Exception as e:
        logger.error("Scheduled index backfill failed: %s", e, exc_info=True)


def create_scheduler(store: DocumentStore) -> AsyncIOScheduler:
    """Create and configure the APScheduler instance."""
    global _scheduler
    settings = get_settings().scheduler

    _scheduler = AsyncIOScheduler()
    _scheduler.add_job(
        _backfill_job,
        trigger=IntervalTrigger(minutes=settings.interval_minutes),
        args=[store],
        id="placemap_geo_index_backfill",
        name="PlaceMap index backfill",
        replace_existing=True,
        max_instances=1,  # prevent overlapping runs
    )

    logger.info("Scheduler configured: index backfill runs every %d minutes",
                settings.interval_minutes)
    return _scheduler


def start_scheduler(store: DocumentStore) -> None:
    """Start the scheduler (non-blocking, needs a running event loop)."""
    settings = get_settings().scheduler
    if not settings.enabled:
        logger.info("Scheduler disabled via config")
        return

    scheduler = create_scheduler(store)
    scheduler.start()
    logger.info("Scheduler started")


def stop_scheduler() -> None:
    """Stop the scheduler gracefully."""
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=True)
        logger.info("Scheduler stopped")
        _scheduler = None


async def run_once() -> dict:
    """Run the backfill once (for CLI / testing)."""
    store = create_store()
    await store.open()
    try:
        return await backfill_index_keys(store)
    finally:
        await store.close()
