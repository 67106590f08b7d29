"""
UTC timestamp utilities for the changelog store.

All datetimes handed to or returned from the store are timezone-aware UTC.
Changelog creation times are persisted as integer unix seconds.

This module provides:
- utc_now(): Current time as timezone-aware datetime
- utc_timestamp(): ISO 8601 timestamp string with 'Z' suffix (used by logging)
- to_unix_seconds(): Aware datetime -> integer seconds since the epoch
- from_unix_seconds(): Integer seconds since the epoch -> aware UTC datetime

Examples:
    >>> from changelog_store.utils.time import from_unix_seconds, to_unix_seconds
    >>> to_unix_seconds(from_unix_seconds(1730534400))
    1730534400
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """
    Return current time in UTC with timezone info.

    Note:
        NEVER use datetime.now() without timezone parameter.
        NEVER use datetime.utcnow() (deprecated, returns naive datetime).
    """
    return datetime.now(UTC)


def utc_timestamp() -> str:
    """
    Return ISO 8601 timestamp string with 'Z' suffix.

    Format: YYYY-MM-DDTHH:MM:SSZ
    """
    return utc_now().strftime("%Y-%m-%dT%H:%M:%SZ")


def to_unix_seconds(dt: datetime) -> int:
    """
    Convert a timezone-aware datetime to whole unix seconds.

    Sub-second precision is truncated, matching the storage column.

    Args:
        dt: Timezone-aware datetime

    Returns:
        int: Seconds since 1970-01-01T00:00:00Z

    Raises:
        ValueError: If dt is naive (missing timezone)

    Examples:
        >>> from datetime import datetime, timezone
        >>> to_unix_seconds(datetime(2024, 11, 2, 8, 0, tzinfo=timezone.utc))
        1730534400

        >>> to_unix_seconds(datetime(2024, 11, 2, 8, 0))
        Traceback (most recent call last):
        ...
        ValueError: Datetime must be timezone-aware (use timezone.utc)
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Datetime must be timezone-aware (use timezone.utc). "
            "Got naive datetime. Use utc_now() or ensure dt has tzinfo set."
        )
    return int(dt.timestamp())


def from_unix_seconds(seconds: int) -> datetime:
    """Convert unix seconds to a timezone-aware UTC datetime."""
    return datetime.fromtimestamp(seconds, UTC)
