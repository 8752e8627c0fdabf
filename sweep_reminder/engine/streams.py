"""Grouping of selected location-sides into notification streams"""
import hashlib
from typing import Dict, Iterable, List, Set, Tuple

from ..storage.models import (
    SIDE_NORTH,
    SIDE_SOUTH,
    LocationSide,
    NotificationStream,
    RecurringSchedule,
    Segment,
    StreamMember,
)
from ..utils.logger import setup_logger

logger = setup_logger(__name__)

# Address blocks on the same street are numbered 100 apart
BLOCK_STEP = 100

SIDE_LABELS = {
    SIDE_NORTH: "N side",
    SIDE_SOUTH: "S side",
}

GroupKey = Tuple[str, int, str, str, str]


def expand(segments: Iterable[Segment]) -> List[LocationSide]:
    """
    Split segments into one LocationSide per side that has a schedule

    Args:
        segments: Selected segments

    Returns:
        List of location-sides, north before south for each segment
    """
    sides = []

    for segment in segments:
        for side, schedule in (
            (SIDE_NORTH, segment.north_schedule),
            (SIDE_SOUTH, segment.south_schedule),
        ):
            if schedule is None:
                continue
            sides.append(LocationSide(
                segment_id=segment.segment_id,
                block_number=segment.block_number,
                street_name=segment.street_name,
                side=side,
                schedule=schedule,
            ))

    return sides


def group_key(side: LocationSide) -> GroupKey:
    """Street plus the full recurring rule; the physical side is not part of it"""
    schedule = side.schedule
    return (
        side.street_name,
        schedule.day_of_week,
        schedule.start_time,
        schedule.end_time,
        schedule.frequency,
    )


def group_by_stream(sides: Iterable[LocationSide]) -> Dict[GroupKey, List[LocationSide]]:
    """Group location-sides by (street, day, start, end, frequency)"""
    groups: Dict[GroupKey, List[LocationSide]] = {}
    for side in sides:
        groups.setdefault(group_key(side), []).append(side)
    return groups


def stream_key(owner_id: str, street_name: str, schedule: RecurringSchedule) -> str:
    """
    Generate the deterministic key of a stream

    Args:
        owner_id: Subscriber ID
        street_name: Street name
        schedule: Recurring schedule

    Returns:
        First 16 hex characters of a SHA-256 digest
    """
    content = (
        f"{owner_id}|{street_name}|{schedule.day_of_week}|"
        f"{schedule.start_time}|{schedule.end_time}|{schedule.frequency}"
    )
    return hashlib.sha256(content.encode()).hexdigest()[:16]


def format_block_range(block_numbers: Iterable[int]) -> str:
    """
    Format block numbers as a human-readable range string

    Examples:
        [2800, 2900, 3000] -> "2800-3000"
        [2800, 3100] -> "2800, 3100"
        [2800, 2900, 3100] -> "2800-2900, 3100"
    """
    numbers = sorted(block_numbers)
    if not numbers:
        return ""

    ranges = []
    range_start = range_end = numbers[0]

    for current in numbers[1:]:
        if current - range_end == BLOCK_STEP:
            range_end = current
            continue
        ranges.append(_format_run(range_start, range_end))
        range_start = range_end = current

    ranges.append(_format_run(range_start, range_end))
    return ", ".join(ranges)


def _format_run(start: int, end: int) -> str:
    if start == end:
        return str(start)
    return f"{start}-{end}"


def side_label(sides: Set[str]) -> str:
    """'both sides' when north and south are present, else the single side"""
    if SIDE_NORTH in sides and SIDE_SOUTH in sides:
        return "both sides"
    if SIDE_NORTH in sides:
        return SIDE_LABELS[SIDE_NORTH]
    return SIDE_LABELS[SIDE_SOUTH]


def format_summary(block_numbers: Iterable[int], label: str) -> str:
    """Block range plus side label, e.g. '2800-3000 (N side)'"""
    return f"{format_block_range(block_numbers)} ({label})"


def compute_streams(owner_id: str, segments: Iterable[Segment]) -> List[NotificationStream]:
    """
    Compute the notification streams for a subscriber's selected segments

    Args:
        owner_id: Subscriber ID
        segments: Selected segments

    Returns:
        One stream per distinct (street, schedule); timestamps left unset
    """
    streams = []
    groups = group_by_stream(expand(segments))

    for sides in groups.values():
        street_name = sides[0].street_name
        schedule = sides[0].schedule

        block_numbers = {side.block_number for side in sides}
        sides_present = {side.side for side in sides}
        members = [
            StreamMember(
                segment_id=side.segment_id,
                block_number=side.block_number,
                side=side.side,
            )
            for side in sides
        ]

        streams.append(NotificationStream(
            owner_id=owner_id,
            stream_key=stream_key(owner_id, street_name, schedule),
            street_name=street_name,
            schedule=schedule,
            members=members,
            summary=format_summary(block_numbers, side_label(sides_present)),
        ))

    logger.debug(f"Computed {len(streams)} stream(s) for owner {owner_id}")
    return streams
