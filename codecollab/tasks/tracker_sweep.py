"""Rate-tracker sweep job - forgets clients with no hits left in their window."""
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from codecollab.core.config import settings
from codecollab.core.rate_tracker import RateTracker

logger = logging.getLogger(__name__)


async def tracker_sweep_job(trackers: list[RateTracker]) -> int:
    removed = sum(tracker.sweep() for tracker in trackers)
    if removed:
        logger.debug("Tracker sweep removed %d idle keys", removed)
    return removed


def schedule_tracker_sweep_job(scheduler: AsyncIOScheduler, trackers: list[RateTracker]) -> None:
    """Register the tracker sweep job with the scheduler."""
    scheduler.add_job(
        tracker_sweep_job,
        "interval",
        args=[trackers],
        minutes=settings.TRACKER_SWEEP_INTERVAL_MINUTES,
        id="tracker_sweep",
        name="Rate Tracker Sweep",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    logger.info(
        "Scheduled tracker sweep job to run every %d minutes",
        settings.TRACKER_SWEEP_INTERVAL_MINUTES,
    )
