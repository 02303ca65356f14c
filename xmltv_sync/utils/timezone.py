"""
Date and Time utilities for guide queries

ISO8601 request parsing and conversion of stored naive-UTC times into a
requested display zone.
"""
from datetime import datetime, timezone
from zoneinfo import ZoneInfo
import logging


logger = logging.getLogger(__name__)


class DateFormatError(ValueError):
    """Raised when date format is invalid"""
    pass


def parse_iso8601_to_utc(date_str: str) -> datetime:
    """
    Parse ISO8601 date string and convert to UTC datetime

    Args:
        date_str: ISO8601 datetime string (e.g., '2025-10-09T00:00:00Z' or '2025-10-09T00:00:00+01:00')

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        DateFormatError: If the date string format is invalid
    """
    try:
        normalized = date_str.replace('Z', '+00:00') if date_str.endswith('Z') else date_str
        dt = datetime.fromisoformat(normalized)
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except (ValueError, AttributeError) as e:
        raise DateFormatError(f"Invalid ISO8601 datetime format: '{date_str}'") from e


def stored_time_to_zone(value: datetime, target_tz: str) -> str:
    """
    Render a stored naive-UTC datetime in the target timezone

    Args:
        value: Naive datetime in UTC as read from the database
        target_tz: Target timezone (IANA format or 'UTC')

    Returns:
        ISO8601 timestamp in target timezone
    """
    aware = value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value
    if target_tz == "UTC":
        return aware.isoformat()
    return aware.astimezone(ZoneInfo(target_tz)).isoformat()
