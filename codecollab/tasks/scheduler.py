"""Background job scheduler using APScheduler."""
import logging

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from codecollab.core.rate_tracker import RateTracker

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: AsyncIOScheduler | None = None


def get_scheduler() -> AsyncIOScheduler:
    """Get the global scheduler instance, creating it if necessary."""
    global scheduler
    if scheduler is None:
        scheduler = AsyncIOScheduler(
            jobstores={"default": MemoryJobStore()},
            executors={"default": AsyncIOExecutor()},
            job_defaults={
                "coalesce": True,  # Combine missed job runs into one
                "max_instances": 1,
                "misfire_grace_time": 300,
            },
            timezone="UTC",
        )
        logger.info("Scheduler created with UTC timezone")
    return scheduler


async def start_scheduler(trackers: list[RateTracker]) -> None:
    """Start the scheduler and register all jobs."""
    from codecollab.tasks.session_cleanup import schedule_session_cleanup_job
    from codecollab.tasks.tracker_sweep import schedule_tracker_sweep_job

    sched = get_scheduler()
    if sched.running:
        logger.warning("Scheduler is already running")
        return

    schedule_session_cleanup_job(sched)
    schedule_tracker_sweep_job(sched, trackers)

    sched.start()
    logger.info("Scheduler started with %d jobs", len(sched.get_jobs()))
    for job in sched.get_jobs():
        logger.info("  - Job: %s, Next run: %s", job.id, job.next_run_time)


async def stop_scheduler() -> None:
    """Stop the scheduler gracefully."""
    global scheduler
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    scheduler = None
