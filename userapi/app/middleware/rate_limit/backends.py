"""Rate limit storage backends.

Both backends implement a fixed window: the first request from a client
opens a window of ``ttl`` milliseconds, every request increments the
client's counter, and the counter restarts once the window has elapsed.
"""

import asyncio
import math
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Callable, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from userapi.app.core.config import settings
from userapi.app.core.logging import get_logger
from userapi.app.middleware.rate_limit.models import (
    RateLimitResult,
    ThrottleRule,
    WindowCounter,
    build_result,
)

logger = get_logger(__name__)

# Atomic increment-with-expiry. The expiry is armed on the first hit of a
# window, and re-armed if the key somehow lost it, so a counter can never
# outlive its window.
INCREMENT_WINDOW_SCRIPT = """
    local current = redis.call('INCR', KEYS[1])
    if current == 1 then
        redis.call('PEXPIRE', KEYS[1], ARGV[1])
    end
    local ttl = redis.call('PTTL', KEYS[1])
    if ttl < 0 then
        redis.call('PEXPIRE', KEYS[1], ARGV[1])
        ttl = tonumber(ARGV[1])
    end
    return {current, ttl}
"""


class RateLimitBackend(ABC):
    """Abstract base class for rate limit backends."""

    @abstractmethod
    async def hit(self, key: str, rule: ThrottleRule) -> RateLimitResult:
        """Count one request for ``key`` and check it against ``rule``.

        The read-compare-increment step must be atomic per key.

        Args:
            key: Rate limit key
            rule: Quota to enforce

        Returns:
            RateLimitResult with allowed status and metadata
        """

    @abstractmethod
    async def cleanup(self) -> None:
        """Clean up expired entries."""

    async def close(self) -> None:
        """Release backend resources."""


class InMemoryRateLimiter(RateLimitBackend):
    """In-memory fixed-window rate limiter.

    Suitable for single-instance deployments.

    Memory bounds:
    - Uses OrderedDict for LRU behavior
    - Limits max entries; the least recently used 20% are evicted when full
    - cleanup() drops windows that have already expired
    """

    DEFAULT_MAX_ENTRIES = 10000

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize rate limiter.

        Args:
            max_entries: Maximum number of tracked keys (LRU eviction)
            clock: Monotonic clock in seconds, injectable for tests
        """
        self._max_entries = max_entries
        self._clock = clock
        self._storage: OrderedDict[str, WindowCounter] = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._storage)

    def _enforce_lru_limit(self) -> None:
        """Make room for one new entry using LRU eviction."""
        if len(self._storage) < self._max_entries:
            return
        remove_count = max(1, int(self._max_entries * 0.2))
        for _ in range(min(remove_count, len(self._storage))):
            self._storage.popitem(last=False)

    async def hit(self, key: str, rule: ThrottleRule) -> RateLimitResult:
        async with self._lock:
            now = self._clock()
            entry = self._storage.get(key)

            if entry is None:
                self._enforce_lru_limit()
            if entry is None or (now - entry.window_start) * 1000 >= entry.ttl:
                entry = WindowCounter(count=0, window_start=now, ttl=rule.ttl)
                self._storage[key] = entry

            # Move key to end (most recently used)
            self._storage.move_to_end(key)
            entry.count += 1

            elapsed_ms = (now - entry.window_start) * 1000
            return build_result(entry.count, rule, entry.ttl - elapsed_ms)

    async def cleanup(self) -> None:
        async with self._lock:
            now = self._clock()
            expired = [
                key for key, entry in self._storage.items()
                if (now - entry.window_start) * 1000 >= entry.ttl
            ]
            for key in expired:
                del self._storage[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired rate limit windows")


class RedisRateLimiter(RateLimitBackend):
    """Redis-based distributed rate limiter.

    Shares counters across instances. Each check is a single Lua script
    call, so concurrent requests for the same key cannot lose updates.
    A store failure or timeout fails open with a warning unless
    ``fail_closed`` is set.
    """

    def __init__(
        self,
        redis_client: Optional[Any] = None,
        redis_url: Optional[str] = None,
        timeout: Optional[float] = None,
        fail_closed: Optional[bool] = None,
    ):
        """Initialize Redis rate limiter.

        Args:
            redis_client: Optional Redis client instance
            redis_url: Redis connection URL
            timeout: Seconds allowed per store round-trip
            fail_closed: Deny requests when the store is unavailable
        """
        self._redis_url = redis_url or settings.redis_url
        self._redis = redis_client
        self._timeout = timeout if timeout is not None else settings.throttle_store_timeout
        self._fail_closed = (
            fail_closed if fail_closed is not None else settings.throttle_fail_closed
        )

    def _get_redis(self) -> Any:
        """Get or create Redis connection."""
        if self._redis is None:
            self._redis = aioredis.from_url(self._redis_url)
        return self._redis

    async def hit(self, key: str, rule: ThrottleRule) -> RateLimitResult:
        try:
            redis_client = self._get_redis()
            count, pttl = await asyncio.wait_for(
                redis_client.eval(INCREMENT_WINDOW_SCRIPT, 1, key, rule.ttl),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Rate limit store timed out after {self._timeout}s")
            return self._handle_store_failure(rule, "timeout")
        except (RedisError, OSError) as e:
            logger.error(f"Rate limit store error: {e}")
            return self._handle_store_failure(rule, "store_error")

        ms_until_reset = int(pttl) if int(pttl) >= 0 else rule.ttl
        return build_result(int(count), rule, ms_until_reset)

    def _handle_store_failure(self, rule: ThrottleRule, error_type: str) -> RateLimitResult:
        """Apply the fail-open/fail-closed policy.

        Args:
            rule: Quota that could not be checked
            error_type: Type of error for logging purposes
        """
        window_seconds = math.ceil(rule.ttl / 1000)

        if self._fail_closed:
            logger.warning(
                f"Rate limiting fail-closed triggered due to {error_type}. "
                "Request denied."
            )
            return RateLimitResult(
                allowed=False,
                limit=rule.limit,
                remaining=0,
                reset_after=window_seconds,
                retry_after=window_seconds,
            )

        logger.warning(
            f"Rate limiting fail-open triggered due to {error_type}. "
            "Request allowed without rate limit check."
        )
        return RateLimitResult(
            allowed=True,
            limit=rule.limit,
            remaining=rule.limit,
            reset_after=window_seconds,
        )

    async def cleanup(self) -> None:
        """No-op for Redis (keys expire automatically)."""

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
