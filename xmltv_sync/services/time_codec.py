"""
XMLTV timestamp parsing

Accepts exactly two forms:
    YYYYMMDDHHMMSS          local civil time
    YYYYMMDDHHMMSS +HHMM    UTC civil time with explicit offset

Anything else yields the epoch, which downstream window checks reject.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo


logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_TIMESTAMP_RE = re.compile(
    r"\s*(\d{4})(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})(?:\s*([+-]?\d+))?"
)


@dataclass(frozen=True, slots=True)
class TimestampFields:
    """Numeric fields recognized in a timestamp string."""
    year: int
    month: int
    day: int
    hour: int
    minute: int
    second: int
    offset: int | None = None  # HHMM as written, e.g. -130 for -01:30

    @property
    def offset_minutes(self) -> int:
        if self.offset is None:
            return 0
        # C semantics: remainder and quotient truncate toward zero
        sign = -1 if self.offset < 0 else 1
        value = abs(self.offset)
        return sign * ((value % 100) + (value // 100) * 60)


def scan_timestamp(text: str) -> TimestampFields | None:
    """Scan the numeric fields of a timestamp, or None if fewer than six are present."""
    match = _TIMESTAMP_RE.match(text)
    if not match:
        return None
    year, month, day, hour, minute, second = (int(value) for value in match.groups()[:6])
    offset = match.group(7)
    return TimestampFields(
        year, month, day, hour, minute, second,
        offset=int(offset) if offset is not None else None,
    )


def parse_xmltv_time(text: str, local_tz: tzinfo | None = None) -> datetime:
    """
    Convert an XMLTV timestamp into an absolute UTC instant

    Args:
        text: Timestamp like '20080715003000' or '20080715003000 -0600'
        local_tz: Zone used when no offset is given (host zone if None)

    Returns:
        Timezone-aware datetime in UTC, or EPOCH when the text cannot be parsed
    """
    scanned = scan_timestamp(text)
    if scanned is None:
        logger.debug("Unrecognized timestamp %r", text)
        return EPOCH

    try:
        civil = datetime(
            scanned.year, scanned.month, scanned.day,
            scanned.hour, scanned.minute, scanned.second,
        )
        if scanned.offset is None:
            if local_tz is None:
                return civil.astimezone().astimezone(timezone.utc)
            return civil.replace(tzinfo=local_tz).astimezone(timezone.utc)

        utc = civil.replace(tzinfo=timezone.utc)
        return utc - timedelta(minutes=scanned.offset_minutes)
    except (ValueError, OverflowError, OSError):
        logger.debug("Out of range timestamp %r", text)
        return EPOCH
