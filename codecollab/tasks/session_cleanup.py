"""Session cleanup background job - purges expired and long-revoked sessions."""
import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.exc import SQLAlchemyError

from codecollab.core.config import settings
from codecollab.core.database import AsyncSessionLocal
from codecollab.services.session_service import cleanup_expired_sessions

logger = logging.getLogger(__name__)


async def session_cleanup_job(session_factory=AsyncSessionLocal) -> int:
    """
    Delete sessions that are past their expiry, or were revoked more
    than the retention window ago.  Only terminal rows are removed, so
    the job can overlap live logins and validations.
    """
    logger.info("Starting session cleanup job...")
    start_time = datetime.now(timezone.utc)

    try:
        async with session_factory() as session:
            deleted_count = await cleanup_expired_sessions(session)
            await session.commit()
    except SQLAlchemyError:
        logger.error("Session cleanup job failed", exc_info=True)
        raise

    duration = (datetime.now(timezone.utc) - start_time).total_seconds()
    logger.info(
        "Session cleanup completed: %d sessions deleted in %.2f seconds",
        deleted_count, duration,
    )
    return deleted_count


def schedule_session_cleanup_job(scheduler: AsyncIOScheduler) -> None:
    """Register the session cleanup job with the scheduler."""
    scheduler.add_job(
        session_cleanup_job,
        "interval",
        minutes=settings.SESSION_CLEANUP_INTERVAL_MINUTES,
        id="session_cleanup",
        name="Session Cleanup",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    logger.info(
        "Scheduled session cleanup job to run every %d minutes",
        settings.SESSION_CLEANUP_INTERVAL_MINUTES,
    )
