import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import PlainTextResponse

from userapi.app.api.errors import register_exception_handlers
from userapi.app.api.health import router as health_router
from userapi.app.api.users import router as users_router
from userapi.app.core.config import settings
from userapi.app.core.logging import get_logger, setup_logging
from userapi.app.db import models  # noqa: F401 - import to register models
from userapi.app.db.async_session import close_async_engine
from userapi.app.db.init_db import check_connection, init_database
from userapi.app.middleware.body_size import BodySizeLimitMiddleware
from userapi.app.middleware.rate_limit import RateLimiter, RateLimitMiddleware
from userapi.app.middleware.request_id import RequestIdMiddleware

# Seconds between sweeps of expired throttle windows
THROTTLE_SWEEP_INTERVAL = 60


async def _sweep_throttle_store(limiter: RateLimiter, interval: float) -> None:
    logger = get_logger(__name__)
    while True:
        await asyncio.sleep(interval)
        try:
            await limiter.cleanup()
        except Exception as e:
            logger.error(f"Throttle store sweep failed: {e}")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    setup_logging()
    logger = get_logger(__name__)

    limiter = RateLimiter(
        limit=settings.throttle_limit,
        ttl=settings.throttle_ttl,
        max_entries=settings.throttle_max_entries,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Create tables, check the database and run the throttle sweeper.

        A database that is down at start-up is logged, not fatal; the health
        endpoints report it until it comes back.
        """
        try:
            await init_database()
        except Exception as e:
            logger.error(f"Database initialization failed: {e}")

        if not await check_connection():
            logger.warning("Database connection failed, starting in degraded mode")

        sweeper = asyncio.create_task(
            _sweep_throttle_store(limiter, THROTTLE_SWEEP_INTERVAL)
        )
        logger.info(
            "Application startup complete",
            extra={
                "app_env": settings.app_env,
                "throttle_limit": settings.throttle_limit,
                "throttle_ttl": settings.throttle_ttl,
                "max_body_size": settings.max_body_size_bytes,
            },
        )

        yield

        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        await limiter.close()
        await close_async_engine()
        logger.info("Application shutdown complete")

    prefix = f"/{settings.api_prefix}" if settings.api_prefix else ""
    docs_url = f"{prefix}/docs" if settings.docs_enabled else None

    app = FastAPI(
        title="User API",
        description="User management API with request throttling and body size limits",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=docs_url,
        redoc_url=None,
        openapi_url=f"{prefix}/docs/openapi.json" if settings.docs_enabled else None,
    )
    app.state.rate_limiter = limiter

    # Add middleware (order matters: last added = first executed)
    # Body size limit (innermost - wraps receive right before routing)
    app.add_middleware(BodySizeLimitMiddleware, max_body_size=settings.max_body_size_bytes)

    # Rate limit runs before the body is read
    app.add_middleware(RateLimitMiddleware, limiter=limiter)

    # Request ID and access log, sees the final status of every response
    app.add_middleware(RequestIdMiddleware)

    # Response compression middleware (compress responses > 1KB)
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # CORS middleware (outermost - handles preflight requests first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "Retry-After",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
        ],
        max_age=600,
    )

    app.include_router(users_router, prefix=prefix)
    app.include_router(health_router, prefix=prefix)

    @app.get(prefix or "/", response_class=PlainTextResponse, include_in_schema=False)
    async def root() -> str:
        return "Hello World!"

    register_exception_handlers(app)

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("userapi.app.main:app", host="0.0.0.0", port=settings.port)
