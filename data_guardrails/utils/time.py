"""Time utility functions for source freshness tracking."""

import math
from datetime import datetime, timezone
from typing import Optional, Union


def get_current_utc() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def to_utc_timestamp(timestamp: Union[int, float, str, datetime]) -> datetime:
    """Convert epoch millis, ISO-8601 strings or datetimes to a UTC datetime."""
    if isinstance(timestamp, datetime):
        if timestamp.tzinfo is None:
            return timestamp.replace(tzinfo=timezone.utc)
        return timestamp.astimezone(timezone.utc)

    elif isinstance(timestamp, str):
        # fromisoformat does not accept a trailing 'Z' before Python 3.11
        parsed = datetime.fromisoformat(timestamp.strip().replace('Z', '+00:00'))
        return to_utc_timestamp(parsed)

    elif isinstance(timestamp, (int, float)):
        return datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)

    else:
        raise ValueError(f"Unsupported timestamp type: {type(timestamp)}")


def to_epoch_millis(dt: Union[str, datetime]) -> int:
    """Convert a datetime (or ISO string) to epoch milliseconds."""
    return int(to_utc_timestamp(dt).timestamp() * 1000)


def age_in_minutes(timestamp_ms: int, now: Optional[datetime] = None) -> float:
    """Elapsed minutes between an epoch-millis timestamp and now."""
    now_ms = to_epoch_millis(now or get_current_utc())
    return (now_ms - timestamp_ms) / (1000 * 60)


def staleness_minutes(timestamp_ms: int, now: Optional[datetime] = None) -> int:
    """Whole minutes elapsed since timestamp_ms (floored)."""
    return math.floor(age_in_minutes(timestamp_ms, now))
