"""Utility functions for the application."""

import math
import re
from datetime import datetime, timezone

_SIZE_UNITS = ["Bytes", "KB", "MB", "GB"]

_SIZE_MULTIPLIERS = {
    "b": 1,
    "kb": 1 << 10,
    "mb": 1 << 20,
    "gb": 1 << 30,
    "tb": 1 << 40,
    "pb": 1 << 50,
}

_SIZE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([kmgtp]?b)?\s*$", re.IGNORECASE)


def format_bytes(num_bytes: int) -> str:
    """Format a byte count using the largest fitting unit.

    The value is rounded half-up to a whole number of that unit.

    Examples:
        >>> format_bytes(0)
        '0 Bytes'
        >>> format_bytes(1024)
        '1 KB'
        >>> format_bytes(10 * 1024 * 1024)
        '10 MB'
    """
    if num_bytes <= 0:
        return "0 Bytes"

    # Exact powers of 1024 select the larger unit.
    exponent = 0
    while exponent < len(_SIZE_UNITS) - 1 and num_bytes >= 1024 ** (exponent + 1):
        exponent += 1

    value = math.floor(num_bytes / 1024**exponent + 0.5)
    return f"{value} {_SIZE_UNITS[exponent]}"


def parse_size(value: str | int) -> int:
    """Parse a human readable size such as ``"10mb"`` into bytes.

    Units are binary (1kb == 1024 bytes) and case-insensitive. A bare
    number is a byte count.

    Raises:
        ValueError: If the value cannot be parsed.
    """
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Invalid size: {value!r}")
        return value

    match = _SIZE_PATTERN.match(str(value))
    if match is None:
        raise ValueError(f"Invalid size: {value!r}")

    number, unit = match.groups()
    multiplier = _SIZE_MULTIPLIERS[(unit or "b").lower()]
    return math.floor(float(number) * multiplier)


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision, e.g.
    ``2024-01-15T10:30:00.000Z``."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
