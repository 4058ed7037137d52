"""
Rate Limit Models
=================
Policies and decision results for rate limiting.
"""

import math
from typing import Optional
from dataclasses import dataclass
from enum import Enum


class RateLimitResult(str, Enum):
    """Rate limit decision result."""
    ALLOWED = "allowed"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class RateLimitPolicy:
    """
    A named admission policy.

    At most `points` consumptions are admitted per key within `duration`
    seconds of the first consumption in the window.
    """
    name: str
    points: int
    duration: int  # seconds

    def __post_init__(self) -> None:
        if self.points < 1:
            raise ValueError("points must be at least 1")
        if self.duration <= 0:
            raise ValueError("duration must be positive")

    def key(self, identifier: str) -> str:
        """Namespaced storage key for an identifier under this policy."""
        return f"ratelimit:{self.name}:{identifier}"


@dataclass
class RateLimitInfo:
    """Rate limit check result with quota information."""
    allowed: bool
    remaining: int
    limit: int
    reset_at: float  # Unix timestamp
    retry_after: Optional[float] = None  # Seconds until retry allowed

    @property
    def result(self) -> RateLimitResult:
        return RateLimitResult.ALLOWED if self.allowed else RateLimitResult.BLOCKED

    @property
    def retry_after_minutes(self) -> int:
        """Wait hint rounded to whole minutes, as shown to users."""
        if not self.retry_after:
            return 0
        return max(1, math.ceil(self.retry_after / 60))
