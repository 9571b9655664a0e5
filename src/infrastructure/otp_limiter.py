"""
Redis-backed OTP attempt limiter.

Counts verification attempts per match in a fixed window.  Every attempt
is counted *before* the code is compared: a Lua script increments the
counter and arms its expiry on the first attempt in one atomic step, so
guesses sent concurrently cannot all slip past the check.  Once the count
passes ``max_attempts`` further attempts are refused until the key
expires.  A successful verification clears the counter.

With ``max_attempts = 0`` the limiter is disabled and every attempt is
allowed.
"""

from __future__ import annotations

import redis.asyncio as aioredis

_COUNT_ATTEMPT = """
local count = redis.call("incr", KEYS[1])
if count == 1 then
    redis.call("expire", KEYS[1], ARGV[1])
end
return count
"""


class OtpAttemptLimiter:
    def __init__(
        self,
        client: aioredis.Redis,
        max_attempts: int = 5,
        window_seconds: int = 900,
    ):
        self.redis = client
        self.max_attempts = max_attempts
        self.window = window_seconds

    @staticmethod
    def key(match_id: str) -> str:
        return f"otp-attempts:{match_id}"

    @property
    def enabled(self) -> bool:
        return self.max_attempts > 0

    async def try_attempt(self, match_id: str) -> bool:
        """Count one attempt.  False once *match_id* is over its limit."""
        if not self.enabled:
            return True
        count = int(
            await self.redis.eval(_COUNT_ATTEMPT, 1, self.key(match_id), self.window)
        )
        return count <= self.max_attempts

    async def reset(self, match_id: str) -> None:
        if self.enabled:
            await self.redis.delete(self.key(match_id))
