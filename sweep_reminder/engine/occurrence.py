"""Occurrence calculator: recurring schedules to concrete cleaning windows"""
import math
from datetime import date, datetime, timedelta
from typing import FrozenSet

from ..storage.models import (
    FREQUENCY_1ST,
    FREQUENCY_1ST_3RD,
    FREQUENCY_2ND,
    FREQUENCY_2ND_4TH,
    FREQUENCY_3RD,
    FREQUENCY_4TH,
    FREQUENCY_WEEKLY,
    Occurrence,
    RecurringSchedule,
)
from ..utils.logger import setup_logger
from ..utils.timezone import CIVIL_TIMEZONE, civil_date, combine_civil

logger = setup_logger(__name__)

# A month plus a week covers the longest gap between two monthly occurrences
MAX_SEARCH_DAYS = 35

# Weekly also fires in the partial fifth week of a month
_ALL_WEEKS = frozenset({1, 2, 3, 4, 5})

FREQUENCY_WEEKS = {
    FREQUENCY_WEEKLY: _ALL_WEEKS,
    FREQUENCY_1ST: frozenset({1}),
    FREQUENCY_2ND: frozenset({2}),
    FREQUENCY_3RD: frozenset({3}),
    FREQUENCY_4TH: frozenset({4}),
    FREQUENCY_1ST_3RD: frozenset({1, 3}),
    FREQUENCY_2ND_4TH: frozenset({2, 4}),
}


class OccurrenceSearchError(RuntimeError):
    """No occurrence found inside the bounded search window"""


def civil_weekday(day: date) -> int:
    """Day of week with Sunday as 0"""
    return (day.weekday() + 1) % 7


def week_of_month(day: date) -> int:
    """1-based week-of-month bucket (days 1-7 are week 1, 29-31 are week 5)"""
    return math.ceil(day.day / 7)


def frequency_weeks(frequency: str) -> FrozenSet[int]:
    """
    Week-of-month buckets a frequency fires in

    Unrecognized frequencies are reported and treated as weekly, so a bad
    ingest value still produces reminders instead of none at all.
    """
    weeks = FREQUENCY_WEEKS.get(frequency)
    if weeks is None:
        logger.warning(f"Unrecognized schedule frequency {frequency!r}, treating as weekly")
        return _ALL_WEEKS
    return weeks


def applies_on_date(schedule: RecurringSchedule, day: date) -> bool:
    """
    Check if a cleaning schedule fires on a civil calendar date

    Args:
        schedule: Recurring schedule
        day: Calendar date in the civil zone

    Returns:
        True if the weekday matches and the week-of-month is in the
        frequency's bucket set
    """
    if civil_weekday(day) != schedule.day_of_week:
        return False
    return week_of_month(day) in frequency_weeks(schedule.frequency)


def occurrence_on(schedule: RecurringSchedule, day: date, tz: str = CIVIL_TIMEZONE) -> Occurrence:
    """Build the occurrence of a schedule on a given civil date"""
    return Occurrence(
        date=day,
        start=combine_civil(day, schedule.start_time, tz),
        end=combine_civil(day, schedule.end_time, tz),
    )


def next_occurrence(
    schedule: RecurringSchedule,
    after: datetime,
    tz: str = CIVIL_TIMEZONE
) -> Occurrence:
    """
    Find the next occurrence that has not finished by `after`

    An occurrence already in progress at `after` is returned; one that has
    fully elapsed is skipped.

    Args:
        schedule: Recurring schedule
        after: Reference instant (naive UTC)
        tz: Civil timezone name

    Returns:
        The first Occurrence whose end is strictly after `after`

    Raises:
        OccurrenceSearchError: If nothing fires within MAX_SEARCH_DAYS
    """
    first_day = civil_date(after, tz)

    for offset in range(MAX_SEARCH_DAYS + 1):
        day = first_day + timedelta(days=offset)
        if not applies_on_date(schedule, day):
            continue

        occurrence = occurrence_on(schedule, day, tz)
        if occurrence.end > after:
            return occurrence

    logger.error(
        f"No occurrence within {MAX_SEARCH_DAYS} days of {after.isoformat()} "
        f"for schedule {schedule.to_dict()}"
    )
    raise OccurrenceSearchError(
        f"No occurrence within {MAX_SEARCH_DAYS} days of {after.isoformat()}"
    )
