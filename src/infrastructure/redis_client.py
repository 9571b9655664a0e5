"""Redis async connection pool and the helpers built on it."""

import redis.asyncio as aioredis

from src.config import settings
from .otp_limiter import OtpAttemptLimiter

_pool = aioredis.ConnectionPool.from_url(
    settings.redis_url, decode_responses=True
)


async def get_redis() -> aioredis.Redis:
    """Return a Redis client backed by the shared connection pool."""
    return aioredis.Redis(connection_pool=_pool)


async def get_otp_limiter() -> OtpAttemptLimiter:
    """OTP attempt limiter configured from settings."""
    return OtpAttemptLimiter(
        await get_redis(),
        max_attempts=settings.otp_max_attempts,
        window_seconds=settings.otp_attempt_window_seconds,
    )
