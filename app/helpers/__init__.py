from __future__ import annotations

from .store import transient_retry
from .time import as_utc, is_expired, utcnow

__all__ = [
    "as_utc",
    "is_expired",
    "transient_retry",
    "utcnow",
]
