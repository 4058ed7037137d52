"""
Redis Rate Limiter
==================
Redis-backed fixed window rate limiter using a Lua script for atomic operations.
"""

import time
from typing import Optional
import structlog

from .models import RateLimitInfo, RateLimitPolicy

logger = structlog.get_logger(__name__)

# Lua script for an atomic fixed window anchored at the first hit.
# Returns {allowed, count, ttl_ms}
FIXED_WINDOW_SCRIPT = """
local key = KEYS[1]
local points = tonumber(ARGV[1])
local window_ms = tonumber(ARGV[2])

local count = redis.call('INCR', key)
if count == 1 then
    redis.call('PEXPIRE', key, window_ms)
end

local ttl = redis.call('PTTL', key)
if ttl < 0 then
    redis.call('PEXPIRE', key, window_ms)
    ttl = window_ms
end

if count > points then
    return {0, count, ttl}
end

return {1, count, ttl}
"""


class RedisRateLimiter:
    """
    Redis-backed fixed window rate limiter.

    Counter and window live in one Redis key, so admission is consistent
    across every service instance that shares the Redis database.
    """

    def __init__(self, redis_client, fail_open: bool = False):
        """
        Args:
            redis_client: Async Redis client
            fail_open: Admit requests when Redis is unavailable instead of raising
        """
        self.redis = redis_client
        self.fail_open = fail_open
        self._script_sha: Optional[str] = None

    async def _ensure_script(self) -> str:
        """Load Lua script into Redis if needed."""
        if self._script_sha is None:
            self._script_sha = await self.redis.script_load(FIXED_WINDOW_SCRIPT)
        return self._script_sha

    async def consume(self, identifier: str, policy: RateLimitPolicy) -> RateLimitInfo:
        """
        Consume one point for an identifier using Redis.

        Args:
            identifier: Rate limit subject
            policy: Policy to apply

        Returns:
            RateLimitInfo with decision

        Raises:
            Any Redis error, unless fail_open is set
        """
        key = policy.key(identifier)

        try:
            script_sha = await self._ensure_script()
            result = await self.redis.evalsha(
                script_sha,
                1,
                key,
                policy.points,
                policy.duration * 1000,
            )
        except Exception as e:
            logger.error("Rate limit check failed", policy=policy.name, error=str(e))
            if not self.fail_open:
                raise
            return RateLimitInfo(
                allowed=True,
                remaining=policy.points,
                limit=policy.points,
                reset_at=time.time() + policy.duration,
            )

        allowed, count, ttl_ms = (int(v) for v in result)
        ttl = ttl_ms / 1000.0
        reset_at = time.time() + ttl

        if not allowed:
            return RateLimitInfo(
                allowed=False,
                remaining=0,
                limit=policy.points,
                reset_at=reset_at,
                retry_after=ttl,
            )

        return RateLimitInfo(
            allowed=True,
            remaining=max(policy.points - count, 0),
            limit=policy.points,
            reset_at=reset_at,
        )
