"""Rate limiting middleware for the API.

This module provides per-client request throttling with fixed time windows.
Supports both in-memory and Redis backends, and per-route overrides through
the skip_throttle and throttle decorators.
"""

import hashlib
from typing import Any, Callable, Iterable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.routing import BaseRoute, Match
from starlette.types import Scope

from userapi.app.api.errors import build_error_response
from userapi.app.core.config import settings
from userapi.app.core.logging import get_log_context, get_logger
from userapi.app.exceptions import TooManyRequestsError

# Re-export models
from userapi.app.middleware.rate_limit.models import (
    RateLimitResult,
    ThrottleRule,
    WindowCounter,
)

# Re-export backends
from userapi.app.middleware.rate_limit.backends import (
    InMemoryRateLimiter,
    RateLimitBackend,
    RedisRateLimiter,
)

from userapi.app.middleware.rate_limit.decorators import (
    resolve_throttle,
    skip_throttle,
    throttle,
)

logger = get_logger(__name__)

UNKNOWN_CLIENT = "unknown"

__all__ = [
    # Models
    "RateLimitResult",
    "ThrottleRule",
    "WindowCounter",
    # Backends
    "RateLimitBackend",
    "InMemoryRateLimiter",
    "RedisRateLimiter",
    # Decorators
    "skip_throttle",
    "throttle",
    # Main classes
    "RateLimiter",
    "RateLimitMiddleware",
    "get_client_id",
]


class RateLimiter:
    """Main rate limiter that selects the appropriate backend.

    Uses the Redis backend if Redis is enabled in settings, otherwise the
    in-memory backend.
    """

    def __init__(
        self,
        limit: int = 10,
        ttl: int = 60000,
        use_redis: Optional[bool] = None,
        max_entries: int = InMemoryRateLimiter.DEFAULT_MAX_ENTRIES,
        backend: Optional[RateLimitBackend] = None,
    ):
        """Initialize rate limiter with appropriate backend.

        Args:
            limit: Maximum requests per window
            ttl: Window length in milliseconds
            use_redis: Force Redis usage (None = auto-detect from settings)
            max_entries: LRU cap for the in-memory backend
            backend: Explicit backend, bypassing auto-detection
        """
        self.default_rule = ThrottleRule(limit=limit, ttl=ttl)

        if backend is not None:
            self._backend = backend
            return

        should_use_redis = use_redis if use_redis is not None else settings.redis_enabled
        if should_use_redis:
            self._backend = RedisRateLimiter()
            logger.info("Using Redis rate limiter backend")
        else:
            self._backend = InMemoryRateLimiter(max_entries=max_entries)
            logger.debug("Using in-memory rate limiter backend")

    @property
    def backend(self) -> RateLimitBackend:
        return self._backend

    async def hit(self, key: str, rule: Optional[ThrottleRule] = None) -> RateLimitResult:
        """Count a request for ``key`` against ``rule`` (default: global quota)."""
        return await self._backend.hit(key, rule or self.default_rule)

    async def cleanup(self) -> None:
        """Clean up expired entries."""
        await self._backend.cleanup()

    async def close(self) -> None:
        await self._backend.close()


def get_client_id(request: Request) -> str:
    """Resolve the client identity used to partition throttle counters.

    The first X-Forwarded-For entry wins, then the socket peer address.
    Falls back to a shared sentinel when neither is available.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        client_ip = forwarded.split(",")[0].strip()
        if client_ip:
            return client_ip
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce rate limits on requests.

    Limits are applied per client address. The matching route is resolved
    here, before the body is read, so per-route skip/override decorators
    take effect, including on routes of included routers. Every throttled
    response carries X-RateLimit-Limit, X-RateLimit-Remaining and
    X-RateLimit-Reset; the reset value is in seconds until the current window
    ends, not a timestamp.
    """

    def __init__(
        self,
        app,
        limiter: Optional[RateLimiter] = None,
        limit: int = 10,
        ttl: int = 60000,
        use_redis: Optional[bool] = None,
    ):
        super().__init__(app)
        self.limiter = limiter or RateLimiter(limit=limit, ttl=ttl, use_redis=use_redis)

    @staticmethod
    def _find_endpoint(
        routes: Iterable[BaseRoute], scope: Scope
    ) -> Optional[Callable[..., Any]]:
        """Match ``scope`` against ``routes``, descending into nested routers.

        Routes added with ``include_router`` may sit behind a wrapper that
        matches as a whole; it is asked which route it would dispatch to.
        Mounts carry their own ``routes`` and are matched again with the
        scope they hand down.
        """
        for route in routes:
            select = getattr(route, "_match", None)
            if select is not None:
                match, child_scope, route, _ = select(dict(scope))
                if route is None:
                    continue
            else:
                match, child_scope = route.matches(dict(scope))
            if match != Match.FULL:
                continue

            if getattr(route, "_match", None) is not None:
                children = [route]
            else:
                children = getattr(route, "routes", None)
            if children is not None:
                endpoint = RateLimitMiddleware._find_endpoint(
                    children, {**scope, **child_scope}
                )
                if endpoint is not None:
                    return endpoint
                continue
            return child_scope.get("endpoint") or getattr(route, "endpoint", None)
        return None

    @staticmethod
    def _resolve_endpoint(request: Request) -> Optional[Callable[..., Any]]:
        """Find the handler the router will dispatch to."""
        router = getattr(request.app, "router", None)
        if router is None:
            return None
        return RateLimitMiddleware._find_endpoint(router.routes, request.scope)

    @staticmethod
    def _handler_name(endpoint: Callable[..., Any]) -> str:
        return f"{endpoint.__module__}.{endpoint.__qualname__}"

    @staticmethod
    def _get_client_key(client_id: str, handler: Optional[str] = None) -> str:
        """Get rate limit key for a client.

        The address is hashed so raw IPs are never kept in the store.
        Route overrides get their own counter per handler.
        """
        client_hash = hashlib.sha256(client_id.encode()).hexdigest()[:32]
        if handler:
            return f"throttle:route:{handler}:{client_hash}"
        return f"throttle:ip:{client_hash}"

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request with rate limiting."""
        endpoint = self._resolve_endpoint(request)
        skip, rule = resolve_throttle(endpoint)
        if skip:
            return await call_next(request)

        client_id = get_client_id(request)
        handler = self._handler_name(endpoint) if rule and endpoint is not None else None
        key = self._get_client_key(client_id, handler)
        result = await self.limiter.hit(key, rule)

        if not result.allowed:
            exc = TooManyRequestsError(
                retry_after=result.retry_after or 1,
                limit=result.limit,
                reset=result.reset_after,
            )
            logger.warning(
                f"Rate limit exceeded: {request.method} {request.url.path}",
                extra=get_log_context(
                    request_id=getattr(request.state, "request_id", None),
                    client_id=client_id,
                    retry_after=exc.retry_after,
                ),
            )
            return build_error_response(
                exc.status_code,
                exc.message,
                request.url.path,
                request.method,
                error=exc.error,
                headers=exc.headers,
            )

        response = await call_next(request)

        response.headers["X-RateLimit-Limit"] = str(result.limit)
        response.headers["X-RateLimit-Remaining"] = str(result.remaining)
        response.headers["X-RateLimit-Reset"] = str(result.reset_after)

        return response
