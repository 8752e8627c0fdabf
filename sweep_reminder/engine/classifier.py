"""Presentation classifier: active / upcoming / all buckets"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple

from ..storage.models import NotificationStream, StageRecord
from ..utils.timezone import CIVIL_TIMEZONE
from .occurrence import next_occurrence
from .stages import is_acknowledged, next_reminder

IMMINENT_WINDOW = timedelta(hours=2)
UPCOMING_WINDOW = timedelta(hours=48)


@dataclass
class StreamView:
    """A stream together with its display status"""
    stream: NotificationStream
    is_active: bool
    next_reminder_at: Optional[datetime] = None
    next_reminder_stage: Optional[str] = None


@dataclass
class Categorized:
    """Streams bucketed for display"""
    active: List[StreamView] = field(default_factory=list)
    upcoming: List[StreamView] = field(default_factory=list)
    all: List[StreamView] = field(default_factory=list)


def has_active_alert(history: Iterable[StageRecord], now: datetime) -> bool:
    """Check for an unacknowledged record whose cleaning has not ended"""
    return any(
        not record.acknowledged and record.occurrence_end > now
        for record in history
    )


def is_active(
    stream: NotificationStream,
    history: Sequence[StageRecord],
    now: datetime,
    tz: str = CIVIL_TIMEZONE
) -> bool:
    """
    Check if a stream needs attention right now

    A stream is active when it has an open alert, or when its next
    unacknowledged cleaning starts within IMMINENT_WINDOW (even if no
    reminder has been issued for it yet).
    """
    if has_active_alert(history, now):
        return True

    occurrence = next_occurrence(stream.schedule, now, tz)
    if is_acknowledged(history, occurrence.date):
        return False
    return occurrence.start <= now + IMMINENT_WINDOW


def build_view(
    stream: NotificationStream,
    history: Sequence[StageRecord],
    now: datetime,
    tz: str = CIVIL_TIMEZONE
) -> StreamView:
    """Evaluate one stream's status at `now`"""
    reminder = next_reminder(stream.schedule, history, now, tz)
    return StreamView(
        stream=stream,
        is_active=is_active(stream, history, now, tz),
        next_reminder_at=reminder.when if reminder else None,
        next_reminder_stage=reminder.stage if reminder else None,
    )


def _by_next_reminder(view: StreamView):
    # Streams without a next reminder sort last
    if view.next_reminder_at is None:
        return (1, datetime.max, view.stream.street_name)
    return (0, view.next_reminder_at, view.stream.street_name)


def categorize(
    entries: Iterable[Tuple[NotificationStream, Sequence[StageRecord]]],
    now: datetime,
    tz: str = CIVIL_TIMEZONE
) -> Categorized:
    """
    Categorize streams into active, upcoming and all

    Args:
        entries: (stream, stage records for that stream) pairs
        now: Reference instant (naive UTC)
        tz: Civil timezone name

    Returns:
        Categorized buckets; every stream appears in `all`
    """
    result = Categorized()
    horizon = now + UPCOMING_WINDOW

    for stream, history in entries:
        view = build_view(stream, list(history), now, tz)
        result.all.append(view)

        if view.is_active:
            result.active.append(view)
        elif view.next_reminder_at is not None and view.next_reminder_at <= horizon:
            result.upcoming.append(view)

    result.active.sort(key=_by_next_reminder)
    result.upcoming.sort(key=_by_next_reminder)
    result.all.sort(key=lambda view: (view.stream.street_name, view.stream.stream_key))
    return result
