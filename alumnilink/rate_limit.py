import logging

from fastapi import Depends, Request

from alumnilink.config import settings
from alumnilink.database import get_redis
from alumnilink.errors import RateLimitError

logger = logging.getLogger(__name__)


class AuthRateLimiter:
    """Fixed-window attempt counter per client IP, kept in Redis."""

    def __init__(self, max_attempts: int = None, window_seconds: int = None, prefix: str = "auth-rate"):
        self.max_attempts = max_attempts or settings.AUTH_RATE_LIMIT_ATTEMPTS
        self.window_seconds = window_seconds or settings.AUTH_RATE_LIMIT_WINDOW_SECONDS
        self.prefix = prefix

    async def hit(self, redis_client, key: str) -> None:
        redis_key = f"{self.prefix}:{key}"
        attempts = await redis_client.incr(redis_key)
        if attempts == 1:
            await redis_client.expire(redis_key, self.window_seconds)

        if attempts > self.max_attempts:
            ttl = await redis_client.ttl(redis_key)
            logger.warning("Rate limit exceeded for %s", key)
            raise RateLimitError(
                "Too many authentication attempts. Please try again later.",
                retry_after=max(ttl, 1),
            )

    async def __call__(self, request: Request, redis_client=Depends(get_redis)) -> None:
        client = request.client.host if request.client else "unknown"
        await self.hit(redis_client, f"{request.url.path}:{client}")


auth_rate_limit = AuthRateLimiter()
