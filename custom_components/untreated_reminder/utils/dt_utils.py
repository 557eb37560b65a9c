# File: utils/dt_utils.py
"""Date and time utilities for Untreated Reminder.

Pure Python date/time functions with ZERO Home Assistant dependencies.
All functions here can be unit tested without Home Assistant mocking.

⚠️ UTILS PURITY: NO `homeassistant.*` imports allowed.
   Uses standard library: datetime, zoneinfo, dateutil.

Working-calendar arithmetic operates on local wall-clock dates and is NOT
safe against clock changes (DST shifts, NTP jumps, manual clock edits).

Functions:
    - as_utc / as_local: Timezone conversion
    - dt_to_utc: Parse an ISO string (or datetime) and convert to UTC
    - dt_to_iso_utc: Serialize a datetime as a UTC ISO string
    - dt_from_epoch_ms: Convert epoch milliseconds to a UTC datetime
    - dt_format_short: Format datetime for notifications
    - day_key_for / parse_day_key / is_valid_day_key: Day key handling
    - is_weekend / is_within_working_hours: Calendar predicates
    - next_working_day_deadline / deadline_for_day_key: Deadline arithmetic
    - next_daily_run / next_top_of_hour: Timer arithmetic
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time
import logging
import re
from zoneinfo import ZoneInfo

# Third-party date utilities (no HA dependency)
from dateutil.relativedelta import relativedelta

# Module-level logger (no HA dependency)
_LOGGER = logging.getLogger(__name__)

# ==============================================================================
# Constants (local copies to avoid circular imports)
# ==============================================================================

# Default timezone - can be overridden by caller
DEFAULT_TIME_ZONE: ZoneInfo = ZoneInfo("UTC")

DAY_KEY_FORMAT = "%Y%m%d"
DAY_KEY_PATTERN = re.compile(r"^\d{8}$")

# Saturday=5, Sunday=6 (datetime.weekday())
WEEKEND_DAYS = frozenset({5, 6})

# Display constant
DISPLAY_UNKNOWN = "Unknown"

# Safety limit for date calculations
MAX_DATE_CALCULATION_ITERATIONS = 14


# ==============================================================================
# Timezone Configuration
# ==============================================================================


def set_default_timezone(tz: ZoneInfo) -> None:
    """Set the default timezone for all dt_utils functions.

    Call this during integration setup to configure the user's timezone.

    Args:
        tz: ZoneInfo object representing the default timezone
    """
    global DEFAULT_TIME_ZONE  # noqa: PLW0603
    DEFAULT_TIME_ZONE = tz


def get_default_timezone() -> ZoneInfo:
    """Get the current default timezone."""
    return DEFAULT_TIME_ZONE


# ==============================================================================
# Timezone Conversion
# ==============================================================================


def as_utc(dt_obj: datetime) -> datetime:
    """Convert a datetime to UTC timezone.

    Naive datetimes are assumed to be in the default timezone.
    """
    if dt_obj.tzinfo is None:
        dt_obj = dt_obj.replace(tzinfo=DEFAULT_TIME_ZONE)
    return dt_obj.astimezone(UTC)


def as_local(dt_obj: datetime, tz: ZoneInfo | None = None) -> datetime:
    """Convert a datetime to local timezone.

    Naive datetimes are assumed to be in UTC.
    """
    tz_info = tz or DEFAULT_TIME_ZONE
    if dt_obj.tzinfo is None:
        dt_obj = dt_obj.replace(tzinfo=UTC)
    return dt_obj.astimezone(tz_info)


# ==============================================================================
# Parsing / Serialization
# ==============================================================================


def dt_to_utc(dt_input: str | datetime | None) -> datetime | None:
    """Parse a datetime string, apply timezone if naive, and convert to UTC.

    Args:
        dt_input: ISO datetime string or datetime object, or None

    Returns:
        UTC-aware datetime object, or None if parsing fails.

    Example:
        "2026-10-19T23:05:00+00:00" → datetime(2026, 10, 19, 23, 5, tzinfo=UTC)
    """
    if not dt_input:
        return None
    if isinstance(dt_input, datetime):
        return as_utc(dt_input)
    if not isinstance(dt_input, str):
        return None
    try:
        parsed = datetime.fromisoformat(dt_input)
    except ValueError:
        _LOGGER.debug("Unparseable datetime string: %s", dt_input)
        return None
    return as_utc(parsed)


def dt_to_iso_utc(dt_obj: datetime) -> str:
    """Serialize a datetime as an ISO-8601 string in UTC."""
    return as_utc(dt_obj).isoformat()


def dt_from_epoch_ms(value: int | float | str | None) -> datetime | None:
    """Convert epoch milliseconds into a UTC datetime.

    Args:
        value: Milliseconds since the Unix epoch (numeric or numeric string)

    Returns:
        UTC-aware datetime, or None when the value is missing or not numeric.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        millis = float(value)
    except (TypeError, ValueError):
        return None
    try:
        return datetime.fromtimestamp(millis / 1000, UTC)
    except (OverflowError, OSError, ValueError):
        return None


def dt_format_short(dt_obj: datetime | None, include_time: bool = True) -> str:
    """Format a datetime into a user-friendly short format.

    Converts to local timezone and formats as "Oct 20, 8:00 AM" (or "Oct 20").
    """
    if dt_obj is None:
        return DISPLAY_UNKNOWN
    local_dt = as_local(dt_obj)
    if include_time:
        return local_dt.strftime("%b %d, %I:%M %p").replace(" 0", " ")
    return local_dt.strftime("%b %d").replace(" 0", " ")


# ==============================================================================
# Day Keys
# ==============================================================================


def day_key_for(dt_obj: datetime, tz: ZoneInfo | None = None) -> str:
    """Return the local calendar day key (YYYYMMDD) for a datetime."""
    return as_local(dt_obj, tz).strftime(DAY_KEY_FORMAT)


def is_valid_day_key(day_key: object) -> bool:
    """Return True when the value is a well-formed, real calendar day key."""
    return parse_day_key(day_key) is not None


def parse_day_key(day_key: object, tz: ZoneInfo | None = None) -> datetime | None:
    """Compose a day key into midnight local time of that day.

    Args:
        day_key: Day key string in YYYYMMDD form
        tz: Optional timezone override. Uses DEFAULT_TIME_ZONE if not provided.

    Returns:
        Timezone-aware datetime at 00:00 local, or None for malformed keys.
    """
    if not isinstance(day_key, str) or not DAY_KEY_PATTERN.match(day_key):
        return None
    try:
        day = datetime.strptime(day_key, DAY_KEY_FORMAT).date()
    except ValueError:
        return None
    return _at_local_hour(day, 0, tz)


def _at_local_hour(day: date, hour: int, tz: ZoneInfo | None = None) -> datetime:
    """Build the wall-clock instant `hour:00` on `day` in the local timezone."""
    return datetime.combine(day, time(hour=hour), tzinfo=tz or DEFAULT_TIME_ZONE)


# ==============================================================================
# Working Calendar
# ==============================================================================


def is_weekend(dt_obj: datetime | date, tz: ZoneInfo | None = None) -> bool:
    """Return True when the local calendar day is a Saturday or Sunday."""
    if isinstance(dt_obj, datetime):
        dt_obj = as_local(dt_obj, tz).date()
    return dt_obj.weekday() in WEEKEND_DAYS


def is_within_working_hours(
    dt_obj: datetime,
    start_hour: int,
    end_hour: int,
    tz: ZoneInfo | None = None,
) -> bool:
    """Return True when the local hour is inside [start_hour, end_hour).

    The weekday is not considered here; callers combine this with is_weekend().
    """
    hour = as_local(dt_obj, tz).hour
    return start_hour <= hour < end_hour


def _next_working_date(day: date) -> date:
    """Advance day by day from `day` until a non-weekend date is reached."""
    iterations = 0
    while day.weekday() in WEEKEND_DAYS:
        day = day + relativedelta(days=1)
        iterations += 1
        if iterations > MAX_DATE_CALCULATION_ITERATIONS:
            break
    return day


def next_working_day_deadline(
    dt_obj: datetime,
    deadline_hour: int,
    tz: ZoneInfo | None = None,
) -> datetime:
    """Return the deadline at `deadline_hour` on the next working day.

    Starts from the next calendar day after `dt_obj` (local time) and
    advances day by day while that day is a weekend.

    Args:
        dt_obj: Any timezone-aware datetime
        deadline_hour: Local hour of the deadline (0-23)
        tz: Optional timezone override. Uses DEFAULT_TIME_ZONE if not provided.

    Returns:
        Timezone-aware local datetime of the deadline.

    Example:
        Friday 16:05 → Monday 08:00 (deadline_hour=8)
    """
    local_day = as_local(dt_obj, tz).date() + relativedelta(days=1)
    return _at_local_hour(_next_working_date(local_day), deadline_hour, tz)


def deadline_for_day_key(
    day_key: str,
    deadline_hour: int,
    tz: ZoneInfo | None = None,
) -> datetime | None:
    """Return the acknowledgement deadline for a day key.

    Composes the day key into midnight local time and delegates to
    next_working_day_deadline(). Returns None for malformed keys.
    """
    midnight = parse_day_key(day_key, tz)
    if midnight is None:
        return None
    return next_working_day_deadline(midnight, deadline_hour, tz)


# ==============================================================================
# Timer Arithmetic
# ==============================================================================


def next_daily_run(
    now: datetime,
    hour: int,
    tz: ZoneInfo | None = None,
) -> datetime:
    """Return the next fire time for the daily reminder timer.

    Today at `hour` if that is still in the future, else tomorrow at `hour`,
    then advanced day by day while the date is a weekend.
    """
    local_now = as_local(now, tz)
    candidate = _at_local_hour(local_now.date(), hour, tz)
    if candidate <= local_now:
        candidate = _at_local_hour(
            local_now.date() + relativedelta(days=1), hour, tz
        )
    return _at_local_hour(_next_working_date(candidate.date()), hour, tz)


def next_top_of_hour(now: datetime, tz: ZoneInfo | None = None) -> datetime:
    """Return the next local top-of-hour instant strictly after `now`.

    Rounds down on the local wall clock, so zones with a half-hour offset
    still fire at :00, then adds one elapsed hour (DST-safe).
    """
    local_top = as_local(now, tz).replace(minute=0, second=0, microsecond=0)
    return as_local(as_utc(local_top) + relativedelta(hours=1), tz)
