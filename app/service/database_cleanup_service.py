"""Database cleanup service.

Removes expired or long-consumed verification codes, reset tokens and
session records.
"""

from datetime import timedelta

from app.config import settings
from app.database import ResetToken, SessionToken, VerificationChallenge
from app.helpers import utcnow
from app.log import log

from sqlalchemy import delete, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col, func, select
from sqlmodel.ext.asyncio.session import AsyncSession

logger = log("Cleanup")

# Revoked or expired sessions are kept this long for auditing
SESSION_RETENTION = timedelta(days=1)


class DatabaseCleanupService:
    """Database cleanup service for expired records.

    Each step commits on its own. A failing step is rolled back and logged so
    the remaining steps still run.
    """

    @staticmethod
    async def _delete(db: AsyncSession, statement, label: str) -> int:
        try:
            result = await db.execute(statement)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Error cleaning {label}: {e!s}")
            return 0

        deleted_count = result.rowcount or 0
        if deleted_count > 0:
            logger.debug(f"Cleaned up {deleted_count} {label}")
        return deleted_count

    @staticmethod
    async def cleanup_expired_challenges(db: AsyncSession) -> int:
        """Delete unused verification codes past their expiry."""
        return await DatabaseCleanupService._delete(
            db,
            delete(VerificationChallenge).where(
                col(VerificationChallenge.is_used).is_(False),
                col(VerificationChallenge.expires_at) < utcnow(),
            ),
            "expired verification codes",
        )

    @staticmethod
    async def cleanup_old_used_challenges(db: AsyncSession, days_old: int = 7) -> int:
        """Delete verification codes consumed more than ``days_old`` days ago."""
        cutoff = utcnow() - timedelta(days=days_old)
        return await DatabaseCleanupService._delete(
            db,
            delete(VerificationChallenge).where(
                col(VerificationChallenge.is_used).is_(True),
                col(VerificationChallenge.used_at) < cutoff,
            ),
            f"used verification codes older than {days_old} days",
        )

    @staticmethod
    async def cleanup_reset_tokens(db: AsyncSession) -> int:
        return await DatabaseCleanupService._delete(
            db,
            delete(ResetToken).where(
                or_(col(ResetToken.is_used).is_(True), col(ResetToken.expires_at) < utcnow())
            ),
            "used or expired reset tokens",
        )

    @staticmethod
    async def cleanup_outdated_sessions(db: AsyncSession) -> int:
        cutoff = utcnow() - SESSION_RETENTION
        return await DatabaseCleanupService._delete(
            db,
            delete(SessionToken).where(
                or_(col(SessionToken.expires_at) < cutoff, col(SessionToken.revoked_at) < cutoff)
            ),
            "expired or revoked sessions",
        )

    @staticmethod
    async def run_full_cleanup(db: AsyncSession) -> dict[str, int]:
        """Run complete cleanup process.

        Returns:
            Dictionary with cleanup statistics for each category.
        """
        results = {
            "expired_challenges": await DatabaseCleanupService.cleanup_expired_challenges(db),
            "old_used_challenges": await DatabaseCleanupService.cleanup_old_used_challenges(
                db, settings.used_challenge_retention_days
            ),
            "reset_tokens": await DatabaseCleanupService.cleanup_reset_tokens(db),
            "outdated_sessions": await DatabaseCleanupService.cleanup_outdated_sessions(db),
        }

        total_cleaned = sum(results.values())
        if total_cleaned > 0:
            logger.debug(f"Full cleanup completed, total cleaned: {total_cleaned} records - {results}")
        return results

    @staticmethod
    async def get_cleanup_statistics(db: AsyncSession) -> dict[str, int]:
        """Count the records the next cleanup run would remove."""
        now = utcnow()
        used_cutoff = now - timedelta(days=settings.used_challenge_retention_days)
        session_cutoff = now - SESSION_RETENTION

        async def count(model, *conditions) -> int:
            return (await db.exec(select(func.count()).select_from(model).where(*conditions))).one()

        return {
            "expired_challenges": await count(
                VerificationChallenge,
                col(VerificationChallenge.is_used).is_(False),
                col(VerificationChallenge.expires_at) < now,
            ),
            "old_used_challenges": await count(
                VerificationChallenge,
                col(VerificationChallenge.is_used).is_(True),
                col(VerificationChallenge.used_at) < used_cutoff,
            ),
            "reset_tokens": await count(
                ResetToken, or_(col(ResetToken.is_used).is_(True), col(ResetToken.expires_at) < now)
            ),
            "outdated_sessions": await count(
                SessionToken,
                or_(col(SessionToken.expires_at) < session_cutoff, col(SessionToken.revoked_at) < session_cutoff),
            ),
        }
