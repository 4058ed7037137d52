"""
In-Memory Rate Limiter
======================
Fixed window rate limiter held in process memory, for development and testing.
"""

import asyncio
import time
from typing import Callable, Dict

from .models import RateLimitInfo, RateLimitPolicy


class InMemoryRateLimiter:
    """
    In-memory fixed window rate limiter.

    The window for a key opens at its first consumption. Consumptions are
    serialized with one lock, so concurrent callers can never be admitted
    more than `points` times per window.

    Closed windows are dropped when their key is next consumed, and a sweep
    at most every `prune_interval` seconds drops the rest, so memory is
    bounded by the keys active within one window.

    State is local to one process. Use RedisRateLimiter when several
    service instances share traffic.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        prune_interval: float = 60.0,
    ):
        """
        Args:
            clock: Source of the current Unix time in seconds
            prune_interval: Minimum seconds between sweeps of closed windows
        """
        self._clock = clock
        self._prune_interval = prune_interval
        self._windows: Dict[str, dict] = {}
        self._lock = asyncio.Lock()
        self._next_prune = clock() + prune_interval

    def _prune(self, now: float) -> None:
        closed = [key for key, window in self._windows.items() if now >= window["reset_at"]]
        for key in closed:
            del self._windows[key]
        self._next_prune = now + self._prune_interval

    async def consume(self, identifier: str, policy: RateLimitPolicy) -> RateLimitInfo:
        """
        Consume one point for an identifier.

        Args:
            identifier: Rate limit subject (e.g., canonical phone number)
            policy: Policy to apply

        Returns:
            RateLimitInfo with decision and quota
        """
        key = policy.key(identifier)

        async with self._lock:
            now = self._clock()
            if now >= self._next_prune:
                self._prune(now)

            window = self._windows.get(key)

            # Open a new window on first use or once the old one has closed
            if window is None or now >= window["reset_at"]:
                window = self._windows[key] = {"reset_at": now + policy.duration, "count": 0}

            reset_at = window["reset_at"]

            if window["count"] >= policy.points:
                return RateLimitInfo(
                    allowed=False,
                    remaining=0,
                    limit=policy.points,
                    reset_at=reset_at,
                    retry_after=reset_at - now,
                )

            window["count"] += 1
            return RateLimitInfo(
                allowed=True,
                remaining=policy.points - window["count"],
                limit=policy.points,
                reset_at=reset_at,
            )

    def reset(self, identifier: str, policy: RateLimitPolicy) -> None:
        """Forget the window for an identifier."""
        self._windows.pop(policy.key(identifier), None)
