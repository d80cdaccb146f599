"""Date and time utilities."""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Get the current UTC datetime.

    Returns:
        The current datetime with UTC timezone.
    """
    return datetime.now(tz=UTC)


def as_utc(dt: datetime) -> datetime:
    """Attach UTC to a naive datetime read back from the database.

    MySQL and SQLite both hand back naive values for DATETIME columns, while
    everything we write is UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def is_expired(expires_at: datetime, now: datetime | None = None) -> bool:
    return as_utc(expires_at) <= (now or utcnow())
