"""Member-local calendar day bucketing.

Offsets follow the browser ``Date.getTimezoneOffset()`` convention: the number
of minutes the local clock is *behind* UTC. A member in UTC+2 reports ``-120``.

Entries are always bucketed from their start instant. A member whose browsers
report different offsets can file entries for the same wall-clock day under
different buckets; this is a known limitation and is not corrected here.
"""

import math
from datetime import date, datetime, timedelta, timezone
from typing import Any

from timeboard.core.errors import ValidationError

MIN_TZ_OFFSET_MINUTES = -720
MAX_TZ_OFFSET_MINUTES = 840


def clamp_tz_offset(value: Any) -> int:
    """Normalize a client-supplied offset.

    Non-numeric input becomes 0; numbers are truncated toward zero and clamped
    to [-720, 840] minutes.
    """
    if value is None or isinstance(value, bool):
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return max(MIN_TZ_OFFSET_MINUTES, min(MAX_TZ_OFFSET_MINUTES, int(number)))


def ensure_utc(instant: datetime) -> datetime:
    """Return an aware UTC datetime. Naive values are taken to be UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def bucket_date(instant_utc: datetime, tz_offset_minutes: Any = 0) -> date:
    """Map a UTC instant to the member-local calendar day it falls on.

    Args:
        instant_utc: Instant to bucket (normally an entry's start)
        tz_offset_minutes: Client offset, clamped before use

    Returns:
        Local calendar date

    Example:
        >>> bucket_date(datetime(2024, 1, 1, 23, 30, tzinfo=timezone.utc), -120)
        datetime.date(2024, 1, 2)
    """
    offset = clamp_tz_offset(tz_offset_minutes)
    shifted = ensure_utc(instant_utc) - timedelta(minutes=offset)
    return shifted.date()


def day_bounds(day: date, tz_offset_minutes: Any = 0) -> tuple[datetime, datetime]:
    """Get the UTC half-open interval [start, end) covering a local day."""
    offset = clamp_tz_offset(tz_offset_minutes)
    start = datetime(day.year, day.month, day.day, tzinfo=timezone.utc) + timedelta(
        minutes=offset
    )
    return start, start + timedelta(days=1)


def week_dates(end_date: date) -> list[date]:
    """Seven local dates ending on ``end_date``, oldest first."""
    return [end_date - timedelta(days=offset) for offset in range(6, -1, -1)]


def parse_date_key(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` day key.

    Raises:
        ValidationError: If the value is not a valid day key
    """
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except (AttributeError, ValueError):
        raise ValidationError(f"Invalid date: {value!r} (expected YYYY-MM-DD)")


def parse_instant(value: str, field_name: str = "timestamp") -> datetime:
    """Parse an ISO-8601 instant into aware UTC.

    Raises:
        ValidationError: If the value cannot be parsed
    """
    raw = (value or "").strip()
    if not raw:
        raise ValidationError(f"Missing {field_name}")
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(raw))
    except ValueError:
        raise ValidationError(f"Invalid {field_name}: {value!r}")
