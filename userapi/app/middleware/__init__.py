"""Middleware package for the API."""

from userapi.app.middleware.body_size import BodySizeLimitMiddleware
from userapi.app.middleware.rate_limit import (
    RateLimiter,
    RateLimitMiddleware,
    skip_throttle,
    throttle,
)
from userapi.app.middleware.request_id import RequestIdMiddleware, get_request_id

__all__ = [
    "BodySizeLimitMiddleware",
    "RateLimiter",
    "RateLimitMiddleware",
    "RequestIdMiddleware",
    "get_request_id",
    "skip_throttle",
    "throttle",
]
