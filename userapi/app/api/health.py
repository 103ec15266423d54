"""Health check endpoints.

/health and /health/database report database connectivity; /health/live
and /health/ready are meant for orchestrator probes.
"""

import resource
import shutil
import sys
import time
from typing import Any

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from userapi.app.core.config import settings
from userapi.app.core.logging import get_logger
from userapi.app.core.utils import format_bytes, utc_timestamp
from userapi.app.db.init_db import check_connection, get_database_info
from userapi.app.middleware.rate_limit import skip_throttle

logger = get_logger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])

_STARTED_AT = time.monotonic()


def get_uptime() -> float:
    """Seconds since the process imported this module."""
    return round(time.monotonic() - _STARTED_AT, 3)


def get_process_rss() -> int:
    """Peak resident set size of this process in bytes."""
    rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # Linux reports kilobytes, macOS reports bytes
    return rss if sys.platform == "darwin" else rss * 1024


def check_memory(threshold: int) -> dict[str, Any]:
    rss = get_process_rss()
    return {
        "status": "up" if rss <= threshold else "down",
        "rss": format_bytes(rss),
        "threshold": format_bytes(threshold),
    }


def check_disk(path: str, threshold: float) -> dict[str, Any]:
    usage = shutil.disk_usage(path)
    ratio = usage.used / usage.total if usage.total else 0.0
    return {
        "status": "up" if ratio <= threshold else "down",
        "path": path,
        "used": round(ratio, 4),
        "threshold": threshold,
    }


@router.get("", summary="Health check endpoint")
async def check() -> dict[str, Any]:
    """Overall service health; degraded when the database is unreachable."""
    connected = await check_connection()
    database: dict[str, Any] = {"connected": connected}
    if connected:
        database["info"] = get_database_info()

    return {
        "status": "ok" if connected else "degraded",
        "timestamp": utc_timestamp(),
        "database": database,
        "uptime": get_uptime(),
    }


@router.get("/database", summary="Database health check")
async def check_database() -> dict[str, Any]:
    connected = await check_connection()
    result: dict[str, Any] = {
        "status": "connected" if connected else "disconnected",
        "timestamp": utc_timestamp(),
    }
    if connected:
        result["info"] = get_database_info()
    return result


@router.get("/live", summary="Liveness probe")
@skip_throttle
async def live() -> dict[str, Any]:
    """Answers as long as the event loop is running. Never throttled."""
    return {"status": "ok", "timestamp": utc_timestamp()}


@router.get("/ready", summary="Readiness probe")
async def ready() -> JSONResponse:
    """Check database, memory and disk; 503 if any of them is down."""
    checks: dict[str, Any] = {
        "database": {"status": "up" if await check_connection() else "down"},
        "memory": check_memory(settings.health_memory_rss),
    }
    try:
        checks["disk"] = check_disk(settings.health_disk_path, settings.health_disk_threshold)
    except OSError as e:
        logger.error(f"Disk check failed for {settings.health_disk_path}: {e}")
        checks["disk"] = {"status": "down", "path": settings.health_disk_path}

    healthy = all(item["status"] == "up" for item in checks.values())
    if not healthy:
        logger.warning("Readiness check failed", extra={"checks": checks})

    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ok" if healthy else "error",
            "timestamp": utc_timestamp(),
            "checks": checks,
        },
    )
