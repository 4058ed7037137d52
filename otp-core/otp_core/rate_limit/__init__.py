"""
Rate Limiting Module
====================
Fixed window admission control keyed by phone number, with in-memory and
Redis backends.
"""

from typing import Protocol

from .models import RateLimitResult, RateLimitInfo, RateLimitPolicy
from .in_memory import InMemoryRateLimiter
from .redis_limiter import RedisRateLimiter, FIXED_WINDOW_SCRIPT


class RateLimiter(Protocol):
    """Anything that can consume a point for a key under a policy."""

    async def consume(self, identifier: str, policy: RateLimitPolicy) -> RateLimitInfo:
        ...


__all__ = [
    # Models
    "RateLimitResult",
    "RateLimitInfo",
    "RateLimitPolicy",
    "RateLimiter",
    # Limiters
    "InMemoryRateLimiter",
    "RedisRateLimiter",
    # Scripts
    "FIXED_WINDOW_SCRIPT",
]
