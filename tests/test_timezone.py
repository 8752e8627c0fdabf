from datetime import date, datetime

import pytest
import pytz
from freezegun import freeze_time

from sweep_reminder.utils.timezone import (
    civil_date,
    combine_civil,
    now_utc,
    parse_time_of_day,
    to_civil,
    to_utc,
)

TZ = "America/Los_Angeles"


def test_to_utc_localizes_naive_values():
    assert to_utc(datetime(2025, 1, 7, 8, 0), TZ) == datetime(2025, 1, 7, 16, 0)
    assert to_utc(datetime(2025, 7, 1, 8, 0), TZ) == datetime(2025, 7, 1, 15, 0)
    assert to_utc(datetime(2025, 1, 7, 8, 0)) == datetime(2025, 1, 7, 8, 0)


def test_to_utc_converts_aware_values():
    aware = pytz.timezone("America/New_York").localize(datetime(2025, 1, 7, 8, 0))
    assert to_utc(aware) == datetime(2025, 1, 7, 13, 0)


def test_civil_date_near_midnight():
    # 07:30 UTC on Jan 7 is still Jan 6 in California
    assert civil_date(datetime(2025, 1, 7, 7, 30), TZ) == date(2025, 1, 6)
    assert to_civil(datetime(2025, 1, 7, 16, 0), TZ).hour == 8


def test_combine_civil():
    assert combine_civil(date(2025, 1, 6), "20:00", TZ) == datetime(2025, 1, 7, 4, 0)


@pytest.mark.parametrize("value", ["8", "8:00am", "24:00", "12:60", "", "ab:cd"])
def test_parse_time_of_day_rejects(value):
    with pytest.raises(ValueError):
        parse_time_of_day(value)


def test_now_utc_is_naive_utc():
    with freeze_time("2025-01-07 15:05:00"):
        assert now_utc() == datetime(2025, 1, 7, 15, 5)
        assert now_utc().tzinfo is None
