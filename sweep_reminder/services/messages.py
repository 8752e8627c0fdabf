"""Outbound reminder message templates"""
from typing import Optional

from ..storage.models import (
    STAGE_10MIN,
    STAGE_1HR,
    STAGE_30MIN,
    STAGE_NIGHT_BEFORE,
    RecurringSchedule,
)
from ..utils.timezone import parse_time_of_day

STAGE_LABELS = {
    STAGE_NIGHT_BEFORE: "8pm night before",
    STAGE_1HR: "1 hour before",
    STAGE_30MIN: "30 minutes before",
    STAGE_10MIN: "10 minutes before",
}


def format_clock(time_of_day: str) -> str:
    """'08:00' -> '8:00 AM'"""
    hours, minutes = parse_time_of_day(time_of_day)
    suffix = "AM" if hours < 12 else "PM"
    display_hours = hours % 12 or 12
    return f"{display_hours}:{minutes:02d} {suffix}"


def format_time_range(schedule: RecurringSchedule) -> str:
    """Cleaning window for display, e.g. '8:00 AM - 10:00 AM'"""
    return f"{format_clock(schedule.start_time)} - {format_clock(schedule.end_time)}"


def build_reminder_message(
    street_name: str,
    summary: str,
    cleaning_time_range: str,
    stage: str,
    alerts_url: Optional[str] = None
) -> str:
    """
    Format the SMS body for a reminder stage

    Args:
        street_name: Street of the stream
        summary: Block range summary, e.g. '2800-3000 (N side)'
        cleaning_time_range: Display time range of the cleaning
        stage: Reminder stage being issued
        alerts_url: Optional link to the alerts page

    Returns:
        Message body
    """
    location = f"{street_name} {summary}"

    if stage == STAGE_NIGHT_BEFORE:
        body = f"Reminder: {location} has street cleaning tomorrow {cleaning_time_range}."
    elif stage == STAGE_1HR:
        body = f"{location} cleaning in 1 hr ({cleaning_time_range})."
    elif stage == STAGE_30MIN:
        body = f"{location} cleaning in 30 min ({cleaning_time_range})."
    elif stage == STAGE_10MIN:
        body = f"FINAL: {location} cleaning in 10 min!"
    else:
        raise ValueError(f"Unknown reminder stage: {stage!r}")

    body += " Reply 1 to dismiss."
    if alerts_url:
        body += f" {alerts_url}"
    return body
