"""Database cleanup scheduled task.

Removes stale verification codes, reset tokens and sessions every hour.
"""

from app.dependencies.database import with_db
from app.dependencies.scheduler import get_scheduler
from app.log import log
from app.service.database_cleanup_service import DatabaseCleanupService

logger = log("Cleanup")


@get_scheduler().scheduled_job(
    "interval",
    id="cleanup_database",
    hours=1,
)
async def scheduled_cleanup_job() -> dict[str, int]:
    async with with_db() as session:
        logger.info("Starting database cleanup...")
        pending = await DatabaseCleanupService.get_cleanup_statistics(session)
        logger.debug(f"Records due for cleanup: {pending}")
        results = await DatabaseCleanupService.run_full_cleanup(session)
        total = sum(results.values())
        if total > 0:
            logger.success(f"Cleanup completed, total records cleaned: {total}")
        return results
