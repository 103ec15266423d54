"""Per-route throttling overrides.

Usage:
    @router.get("/live")
    @skip_throttle
    async def live(): ...

    @router.post("/login")
    @throttle(limit=3, ttl=60000)
    async def login(): ...
"""

from typing import Any, Callable, Optional, Tuple, TypeVar

from userapi.app.middleware.rate_limit.models import ThrottleRule

F = TypeVar("F", bound=Callable[..., Any])

SKIP_THROTTLE_ATTR = "__skip_throttle__"
THROTTLE_RULE_ATTR = "__throttle_rule__"


def skip_throttle(func: F) -> F:
    """Exempt a route handler from rate limiting."""
    setattr(func, SKIP_THROTTLE_ATTR, True)
    return func


def throttle(limit: int, ttl: int) -> Callable[[F], F]:
    """Give a route handler its own quota instead of the global one.

    Args:
        limit: Maximum requests per window
        ttl: Window length in milliseconds
    """
    rule = ThrottleRule(limit=limit, ttl=ttl)

    def decorator(func: F) -> F:
        setattr(func, THROTTLE_RULE_ATTR, rule)
        return func

    return decorator


def resolve_throttle(endpoint: Optional[Callable[..., Any]]) -> Tuple[bool, Optional[ThrottleRule]]:
    """Read the throttling metadata of a route handler.

    Returns:
        (skip, rule) where rule is None when the global quota applies.
        Skip wins over an override when both are set.
    """
    if endpoint is None:
        return False, None
    if getattr(endpoint, SKIP_THROTTLE_ATTR, False):
        return True, None
    return False, getattr(endpoint, THROTTLE_RULE_ATTR, None)
