"""
Timestamp utilities for consistent time handling across parsers and history merging.
"""

import time
from datetime import datetime, timezone
from typing import Any, Optional

# Values above this are taken to be milliseconds (year 33658 in seconds)
_MILLIS_THRESHOLD = 1e12


def now_seconds() -> int:
    """Current Unix time in whole seconds."""
    return int(time.time())


def to_datetime(timestamp: Optional[int] = None) -> datetime:
    """Convert timestamp to a UTC datetime object.

    Args:
        timestamp: Unix timestamp in seconds (optional, uses current time if None)

    Returns:
        datetime object
    """
    if timestamp is None:
        timestamp = time.time()
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def parse_timestamp(value: Any) -> Optional[float]:
    """Read an export timestamp into Unix seconds.

    Accepts Unix seconds or milliseconds (numbers or numeric strings) and ISO 8601
    strings with or without a trailing ``Z``. Returns None for anything else.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        try:
            seconds = float(raw)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(raw.replace('Z', '+00:00'))
            except ValueError:
                return None
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.timestamp()
    else:
        return None

    if seconds > _MILLIS_THRESHOLD:
        seconds = seconds / 1000.0
    return seconds
