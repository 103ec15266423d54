"""Rate limiting data models.

This module contains dataclasses for throttle rules, per-client window
state and check results.
"""

import math
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ThrottleRule:
    """Request quota: at most ``limit`` requests per ``ttl`` milliseconds."""
    limit: int
    ttl: int

    def __post_init__(self) -> None:
        if self.limit < 1 or self.ttl < 1:
            raise ValueError("Throttle limit and ttl must be at least 1")


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    limit: int
    remaining: int
    reset_after: int  # seconds until the window resets
    retry_after: Optional[int] = None


@dataclass
class WindowCounter:
    """Fixed-window request counter for one client."""
    count: int
    window_start: float  # clock seconds
    ttl: int  # window length in milliseconds


def build_result(count: int, rule: ThrottleRule, ms_until_reset: float) -> RateLimitResult:
    """Turn a post-increment count into a RateLimitResult.

    Args:
        count: Request count in the current window, including this request
        rule: Quota the count is checked against
        ms_until_reset: Milliseconds left in the current window

    Returns:
        RateLimitResult; Retry-After is kept within (0, ttl/1000] seconds
    """
    ms_until_reset = min(max(ms_until_reset, 0.0), float(rule.ttl))
    reset_after = math.ceil(ms_until_reset / 1000)

    if count > rule.limit:
        retry_after = max(1, min(reset_after, math.ceil(rule.ttl / 1000)))
        return RateLimitResult(
            allowed=False,
            limit=rule.limit,
            remaining=0,
            reset_after=reset_after,
            retry_after=retry_after,
        )

    return RateLimitResult(
        allowed=True,
        limit=rule.limit,
        remaining=rule.limit - count,
        reset_after=reset_after,
    )
