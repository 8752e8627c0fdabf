"""Data models for schedules, streams and stage records"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, NamedTuple, Optional

from ..utils.timezone import parse_time_of_day

# Cleaning frequencies, by week-of-month bucket
FREQUENCY_WEEKLY = "weekly"
FREQUENCY_1ST = "1st"
FREQUENCY_2ND = "2nd"
FREQUENCY_3RD = "3rd"
FREQUENCY_4TH = "4th"
FREQUENCY_1ST_3RD = "1st_3rd"
FREQUENCY_2ND_4TH = "2nd_4th"

FREQUENCIES = (
    FREQUENCY_WEEKLY,
    FREQUENCY_1ST,
    FREQUENCY_2ND,
    FREQUENCY_3RD,
    FREQUENCY_4TH,
    FREQUENCY_1ST_3RD,
    FREQUENCY_2ND_4TH,
)

# Reminder stages, least urgent first
STAGE_NIGHT_BEFORE = "night_before"
STAGE_1HR = "1hr"
STAGE_30MIN = "30min"
STAGE_10MIN = "10min"

STAGES = (STAGE_NIGHT_BEFORE, STAGE_1HR, STAGE_30MIN, STAGE_10MIN)

# Street sides
SIDE_NORTH = "N"
SIDE_SOUTH = "S"


@dataclass(frozen=True)
class RecurringSchedule:
    """A recurring cleaning window on one side of a block"""
    day_of_week: int  # 0=Sunday ... 6=Saturday
    start_time: str  # 'HH:MM'
    end_time: str  # 'HH:MM'
    frequency: str

    def __post_init__(self):
        if not 0 <= self.day_of_week <= 6:
            raise ValueError(f"day_of_week must be 0-6, got {self.day_of_week}")
        start = parse_time_of_day(self.start_time)
        end = parse_time_of_day(self.end_time)
        if start >= end:
            raise ValueError(
                f"start_time {self.start_time} must be before end_time {self.end_time}"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecurringSchedule":
        """Build a schedule from the ingest representation"""
        return cls(
            day_of_week=int(data["dayOfWeek"]),
            start_time=str(data["startTime"]),
            end_time=str(data["endTime"]),
            frequency=str(data["frequency"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dayOfWeek": self.day_of_week,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "frequency": self.frequency,
        }


@dataclass
class Segment:
    """An ingested street segment (one address block) with per-side schedules"""
    segment_id: str
    block_number: int
    street_name: str
    north_schedule: Optional[RecurringSchedule] = None
    south_schedule: Optional[RecurringSchedule] = None


@dataclass(frozen=True)
class LocationSide:
    """One side of a segment together with its own schedule"""
    segment_id: str
    block_number: int
    street_name: str
    side: str
    schedule: RecurringSchedule


@dataclass(frozen=True)
class StreamMember:
    """A location-side folded into a notification stream"""
    segment_id: str
    block_number: int
    side: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "segmentId": self.segment_id,
            "blockNumber": self.block_number,
            "side": self.side,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StreamMember":
        return cls(
            segment_id=data["segmentId"],
            block_number=int(data["blockNumber"]),
            side=data["side"],
        )


@dataclass
class NotificationStream:
    """The unit a subscriber receives reminders for"""
    owner_id: str
    stream_key: str
    street_name: str
    schedule: RecurringSchedule
    members: List[StreamMember] = field(default_factory=list)
    summary: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __hash__(self):
        return hash(self.stream_key)

    def __eq__(self, other):
        if not isinstance(other, NotificationStream):
            return False
        return self.stream_key == other.stream_key


@dataclass
class StageRecord:
    """One issued (or acknowledged placeholder) reminder for one occurrence"""
    owner_id: str
    stream_key: str
    occurrence_date: date
    occurrence_start: datetime
    occurrence_end: datetime
    stage: str
    issued_at: datetime
    acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None

    def __hash__(self):
        return hash((self.stream_key, self.occurrence_date, self.stage))

    def __eq__(self, other):
        if not isinstance(other, StageRecord):
            return False
        return (self.stream_key == other.stream_key and
                self.occurrence_date == other.occurrence_date and
                self.stage == other.stage)


@dataclass
class Subscriber:
    """A phone number that receives reminders for an owner"""
    owner_id: str
    phone: str


class Occurrence(NamedTuple):
    """A concrete cleaning window: civil date plus UTC start/end instants"""
    date: date
    start: datetime
    end: datetime
