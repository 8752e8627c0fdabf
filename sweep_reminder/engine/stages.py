"""Stage scheduler: which reminder is due now and which one comes next

Nothing here stores a "current stage". Every answer is recomputed from the
schedule, the stage records already written for the stream and the instant
passed in as `now`, so any worker can evaluate a stream at any time.
"""
from datetime import date, datetime, timedelta
from typing import Iterable, NamedTuple, Optional, Set

from ..storage.models import (
    STAGE_10MIN,
    STAGE_1HR,
    STAGE_30MIN,
    STAGE_NIGHT_BEFORE,
    STAGES,
    Occurrence,
    RecurringSchedule,
    StageRecord,
)
from ..utils.timezone import CIVIL_TIMEZONE, civil_date, combine_civil
from .occurrence import next_occurrence

NIGHT_BEFORE_TIME = "20:00"

STAGE_LEAD_TIMES = {
    STAGE_1HR: timedelta(minutes=60),
    STAGE_30MIN: timedelta(minutes=30),
    STAGE_10MIN: timedelta(minutes=10),
}

# Smallest step past an occurrence's end when rolling to the following one
TICK = timedelta(microseconds=1)


class Reminder(NamedTuple):
    """Next reminder to wait for"""
    when: datetime
    stage: str
    occurrence: Occurrence


def stage_send_time(start: datetime, stage: str, tz: str = CIVIL_TIMEZONE) -> datetime:
    """
    Calculate the send time for a reminder stage

    Args:
        start: Occurrence start (naive UTC)
        stage: One of STAGES
        tz: Civil timezone name

    Returns:
        Send time (naive UTC)
    """
    if stage == STAGE_NIGHT_BEFORE:
        previous_day = civil_date(start, tz) - timedelta(days=1)
        return combine_civil(previous_day, NIGHT_BEFORE_TIME, tz)

    if stage not in STAGE_LEAD_TIMES:
        raise ValueError(f"Unknown reminder stage: {stage!r}")
    return start - STAGE_LEAD_TIMES[stage]


def stage_due_now(start: datetime, now: datetime, tz: str = CIVIL_TIMEZONE) -> Optional[str]:
    """
    Determine which stage window `now` falls in

    Each stage owns [its send time, the next stage's send time); the last
    stage runs until the occurrence starts.

    Returns:
        The due stage, or None before the night-before reminder or once
        cleaning has started
    """
    if now >= start:
        return None

    # Most urgent first
    for index in range(len(STAGES) - 1, -1, -1):
        stage = STAGES[index]
        send_time = stage_send_time(start, stage, tz)
        if index < len(STAGES) - 1:
            window_end = stage_send_time(start, STAGES[index + 1], tz)
        else:
            window_end = start

        if send_time <= now < window_end:
            return stage

    return None


def _records_for(history: Iterable[StageRecord], day: date) -> list:
    return [record for record in history if record.occurrence_date == day]


def is_acknowledged(history: Iterable[StageRecord], day: date) -> bool:
    """Check if any record for the occurrence date has been acknowledged"""
    return any(record.acknowledged for record in _records_for(history, day))


def issued_stages(history: Iterable[StageRecord], day: date) -> Set[str]:
    """Stages already recorded for the occurrence date"""
    return {record.stage for record in _records_for(history, day)}


def following_occurrence(
    schedule: RecurringSchedule,
    occurrence: Occurrence,
    tz: str = CIVIL_TIMEZONE
) -> Occurrence:
    """The occurrence after the given one"""
    return next_occurrence(schedule, occurrence.end + TICK, tz)


def next_reminder(
    schedule: RecurringSchedule,
    history: Iterable[StageRecord],
    now: datetime,
    tz: str = CIVIL_TIMEZONE
) -> Optional[Reminder]:
    """
    Compute the next (time, stage) pair to wait for

    Args:
        schedule: Recurring schedule of the stream
        history: Stage records already written for the stream
        now: Reference instant (naive UTC)
        tz: Civil timezone name

    Returns:
        The next Reminder, or None when both the upcoming and the following
        occurrence are acknowledged
    """
    history = list(history)
    occurrence = next_occurrence(schedule, now, tz)

    acknowledged = is_acknowledged(history, occurrence.date)

    if not acknowledged:
        already_issued = issued_stages(history, occurrence.date)
        for stage in STAGES:
            if stage in already_issued:
                continue
            send_time = stage_send_time(occurrence.start, stage, tz)
            if send_time > now:
                return Reminder(send_time, stage, occurrence)

    following = following_occurrence(schedule, occurrence, tz)
    if acknowledged and is_acknowledged(history, following.date):
        return None

    # The following occurrence is at least a week out, so its night-before
    # reminder is always after `now`
    return Reminder(
        stage_send_time(following.start, STAGE_NIGHT_BEFORE, tz),
        STAGE_NIGHT_BEFORE,
        following,
    )


class DueReminder(NamedTuple):
    """A stage that should be issued right now"""
    stage: str
    occurrence: Occurrence


def due_reminder(
    schedule: RecurringSchedule,
    history: Iterable[StageRecord],
    now: datetime,
    tz: str = CIVIL_TIMEZONE
) -> Optional[DueReminder]:
    """
    Find the stage a worker should issue at `now`

    Returns:
        DueReminder when the next occurrence is unacknowledged, a stage
        window is open and that stage has no record yet; otherwise None
    """
    history = list(history)
    occurrence = next_occurrence(schedule, now, tz)

    if is_acknowledged(history, occurrence.date):
        return None

    stage = stage_due_now(occurrence.start, now, tz)
    if stage is None or stage in issued_stages(history, occurrence.date):
        return None

    return DueReminder(stage, occurrence)
