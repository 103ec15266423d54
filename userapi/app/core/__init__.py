"""Core utilities for the application."""

from userapi.app.core.config import Settings, settings
from userapi.app.core.logging import get_logger, setup_logging
from userapi.app.core.utils import format_bytes, parse_size, utc_timestamp

__all__ = [
    "Settings",
    "settings",
    "get_logger",
    "setup_logging",
    "format_bytes",
    "parse_size",
    "utc_timestamp",
]
