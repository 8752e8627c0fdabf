"""
Shared pytest fixtures for reminder engine tests.

All instants handed to the engine are naive UTC datetimes. The `pacific`
helper builds them from wall-clock times in America/Los_Angeles so tests can
be written the way a subscriber reads the schedule.

Calendar used throughout (January 2025):
    Sun Jan 5, Mon Jan 6, Tue Jan 7 (1st Tuesday), Tue Jan 14 (2nd Tuesday)
"""

import json
from datetime import datetime, timedelta

import pytest

from sweep_reminder.storage.database import Database
from sweep_reminder.storage.models import (
    RecurringSchedule,
    Segment,
    StageRecord,
    Subscriber,
)
from sweep_reminder.utils.timezone import to_utc

TZ = "America/Los_Angeles"


def pacific(year, month, day, hour=0, minute=0):
    """Naive UTC instant for a Pacific wall-clock time"""
    return to_utc(datetime(year, month, day, hour, minute), TZ)


def make_record(stream_key, occurrence_date, stage, acknowledged=False, owner_id="user-1",
                start="08:00", end="10:00"):
    """Build a StageRecord for an 08:00-10:00 cleaning on a Pacific date"""
    sh, sm = (int(p) for p in start.split(":"))
    eh, em = (int(p) for p in end.split(":"))
    d = occurrence_date
    return StageRecord(
        owner_id=owner_id,
        stream_key=stream_key,
        occurrence_date=d,
        occurrence_start=pacific(d.year, d.month, d.day, sh, sm),
        occurrence_end=pacific(d.year, d.month, d.day, eh, em),
        stage=stage,
        issued_at=pacific(d.year, d.month, d.day, sh, sm) - timedelta(hours=12),
        acknowledged=acknowledged,
        acknowledged_at=pacific(d.year, d.month, d.day, 6, 0) if acknowledged else None,
    )


@pytest.fixture
def tuesday_schedule():
    """Weekly Tuesday 08:00-10:00 cleaning"""
    return RecurringSchedule(day_of_week=2, start_time="08:00", end_time="10:00",
                             frequency="weekly")


@pytest.fixture
def segments(tuesday_schedule):
    """Three Chestnut St blocks and one Lombard St block"""
    friday = RecurringSchedule(day_of_week=5, start_time="12:00", end_time="14:00",
                               frequency="1st_3rd")
    return {
        "cnn-2800": Segment("cnn-2800", 2800, "Chestnut St",
                            north_schedule=tuesday_schedule, south_schedule=friday),
        "cnn-2900": Segment("cnn-2900", 2900, "Chestnut St",
                            north_schedule=tuesday_schedule, south_schedule=tuesday_schedule),
        "cnn-3100": Segment("cnn-3100", 3100, "Chestnut St",
                            north_schedule=tuesday_schedule),
        "cnn-lombard": Segment("cnn-lombard", 2000, "Lombard St",
                               south_schedule=tuesday_schedule),
    }


@pytest.fixture
def db(tmp_path):
    """Fresh SQLite database per test"""
    return Database(db_path=str(tmp_path / "reminders.db"))


@pytest.fixture
def subscriber(db):
    sub = Subscriber(owner_id="user-1", phone="+14155550100")
    db.upsert_subscriber(sub)
    return sub


@pytest.fixture
def segments_file(tmp_path):
    """Segments JSON document in the ingest format"""
    document = {
        "version": "1",
        "generatedAt": "2025-01-01T00:00:00Z",
        "count": 3,
        "segments": [
            {
                "cnn": "cnn-2800",
                "streetName": "Chestnut St",
                "fromAddress": "2801",
                "toAddress": "2899",
                "schedules": [
                    {"side": "North", "dayOfWeek": 2, "startTime": "08:00",
                     "endTime": "10:00", "weeksOfMonth": [1, 2, 3, 4, 5]},
                    {"side": "South", "dayOfWeek": 5, "startTime": "12:00",
                     "endTime": "14:00", "weeksOfMonth": [3, 1]},
                ],
            },
            {
                "cnn": "cnn-2900",
                "streetName": "Chestnut St",
                "fromAddress": "2900",
                "toAddress": "2999",
                "schedules": [
                    {"side": "Both", "dayOfWeek": 2, "startTime": "08:00",
                     "endTime": "10:00", "weeksOfMonth": [1, 2, 3, 4]},
                ],
            },
            {
                "cnn": "",
                "streetName": "Nowhere St",
                "fromAddress": "100",
                "schedules": [],
            },
        ],
    }
    path = tmp_path / "street-segments.json"
    path.write_text(json.dumps(document), encoding="utf-8")
    return path
