"""Civil time zone conversion utilities"""
from datetime import date, datetime, time
from typing import Optional, Tuple
import pytz

# San Francisco street cleaning runs on Pacific time
CIVIL_TIMEZONE = "America/Los_Angeles"


def to_utc(dt: datetime, tz: Optional[str] = None) -> datetime:
    """
    Convert a datetime to UTC.

    Args:
        dt: Datetime object (naive or timezone-aware)
        tz: Optional timezone string (e.g., 'America/Los_Angeles')
            If provided and dt is naive, dt is assumed to be in that timezone

    Returns:
        Naive datetime object in UTC
    """
    if dt.tzinfo is None:
        if tz:
            # Naive datetime, assume it's in the specified timezone
            tz_obj = pytz.timezone(tz)
            dt = tz_obj.localize(dt)
        else:
            # Naive datetime, assume UTC
            dt = pytz.UTC.localize(dt)

    return dt.astimezone(pytz.UTC).replace(tzinfo=None)


def to_civil(instant: datetime, tz: str = CIVIL_TIMEZONE) -> datetime:
    """Convert a naive UTC instant to an aware datetime in the civil zone"""
    return pytz.UTC.localize(instant).astimezone(pytz.timezone(tz))


def civil_date(instant: datetime, tz: str = CIVIL_TIMEZONE) -> date:
    """Calendar date of a naive UTC instant in the civil zone"""
    return to_civil(instant, tz).date()


def parse_time_of_day(value: str) -> Tuple[int, int]:
    """
    Parse an 'HH:MM' string into (hours, minutes)

    Raises:
        ValueError: If the string is not a valid time of day
    """
    parts = value.split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ValueError(f"Invalid time of day: {value!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"Invalid time of day: {value!r}")
    return hours, minutes


def combine_civil(day: date, time_of_day: str, tz: str = CIVIL_TIMEZONE) -> datetime:
    """
    Build the UTC instant for a civil date and 'HH:MM' time of day.

    The zone's offset is resolved for that specific date, so dates on either
    side of a daylight saving transition get their own offset.

    Args:
        day: Calendar date in the civil zone
        time_of_day: 'HH:MM' string
        tz: Civil timezone name

    Returns:
        Naive datetime in UTC
    """
    hours, minutes = parse_time_of_day(time_of_day)
    return to_utc(datetime.combine(day, time(hours, minutes)), tz)


def now_utc() -> datetime:
    """Get current UTC time as naive datetime"""
    return datetime.now(pytz.UTC).replace(tzinfo=None)
