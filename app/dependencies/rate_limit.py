from app.config import settings

from fastapi import Depends
from fastapi_limiter.depends import RateLimiter
from pyrate_limiter import Duration, Limiter, Rate

if settings.enable_rate_limit:
    LIMITERS = [
        Depends(RateLimiter(limiter=Limiter(Rate(600, Duration.MINUTE)))),
        Depends(RateLimiter(limiter=Limiter(Rate(50, Duration.SECOND)))),
    ]
    # Credential and code endpoints get a tighter budget
    AUTH_LIMITERS = [
        Depends(RateLimiter(limiter=Limiter(Rate(10, Duration.MINUTE)))),
    ]
else:
    LIMITERS = []
    AUTH_LIMITERS = []
