from datetime import date

from freezegun import freeze_time

from sweep_reminder.engine.streams import compute_streams
from sweep_reminder.services.notification_service import NotificationService
from sweep_reminder.storage.models import RecurringSchedule, Segment
from sweep_reminder.utils.timezone import now_utc

from conftest import TZ, make_record, pacific


class FakeSMSClient:
    def __init__(self, succeed=True):
        self.succeed = succeed
        self.sent = []

    def send_with_retry(self, to, body, max_retries=3):
        self.sent.append((to, body))
        return self.succeed


def store_stream(db, segments, segment_id="cnn-3100", owner_id="user-1"):
    (stream,) = db.replace_streams(
        owner_id, compute_streams(owner_id, [segments[segment_id]]), pacific(2025, 1, 1)
    )
    return stream


def make_service(db, sms):
    return NotificationService(db, sms, alerts_url="https://example.org/alerts", tz=TZ)


def test_sends_due_stage_once(db, segments, subscriber):
    stream = store_stream(db, segments)
    sms = FakeSMSClient()
    service = make_service(db, sms)

    now = pacific(2025, 1, 6, 20, 5)
    assert service.check_and_notify(now) == 1
    assert service.check_and_notify(now) == 0

    (to, body), = sms.sent
    assert to == subscriber.phone
    assert body.startswith("Reminder: Chestnut St 3100 (N side) has street cleaning tomorrow")
    assert body.endswith("https://example.org/alerts")

    (record,) = db.get_stage_records(stream.stream_key)
    assert record.stage == "night_before"
    assert record.occurrence_date == date(2025, 1, 7)
    assert record.issued_at == now
    assert not record.acknowledged


def test_walks_through_all_stages(db, segments, subscriber):
    stream = store_stream(db, segments)
    sms = FakeSMSClient()
    service = make_service(db, sms)

    for hour, minute in [(20, 0), (7, 0), (7, 30), (7, 50)]:
        day = 6 if hour == 20 else 7
        service.check_and_notify(pacific(2025, 1, day, hour, minute))

    stages = [r.stage for r in db.get_stage_records(stream.stream_key)]
    assert sorted(stages) == sorted(["night_before", "1hr", "30min", "10min"])
    assert sms.sent[-1][1].startswith("FINAL:")


def test_acknowledged_occurrence_gets_no_reminders(db, segments, subscriber):
    stream = store_stream(db, segments)
    db.acknowledge("user-1", stream.stream_key, date(2025, 1, 7), pacific(2025, 1, 6, 12), TZ)
    sms = FakeSMSClient()

    assert make_service(db, sms).check_and_notify(pacific(2025, 1, 7, 7, 5)) == 0
    assert sms.sent == []


def test_already_claimed_stage_is_not_resent(db, segments, subscriber):
    stream = store_stream(db, segments)
    db.insert_stage_record(make_record(stream.stream_key, date(2025, 1, 7), "1hr"))
    sms = FakeSMSClient()

    assert make_service(db, sms).check_and_notify(pacific(2025, 1, 7, 7, 5)) == 0
    assert sms.sent == []


def test_failed_send_releases_claim(db, segments, subscriber):
    stream = store_stream(db, segments)
    service = make_service(db, FakeSMSClient(succeed=False))

    assert service.check_and_notify(pacific(2025, 1, 7, 7, 5)) == 0
    assert db.get_stage_records(stream.stream_key) == []

    service.sms_client = FakeSMSClient()
    assert service.check_and_notify(pacific(2025, 1, 7, 7, 6)) == 1


def test_owner_without_phone_is_skipped(db, segments):
    store_stream(db, segments)
    sms = FakeSMSClient()
    assert make_service(db, sms).check_and_notify(pacific(2025, 1, 7, 7, 5)) == 0
    assert sms.sent == []


def test_broken_stream_does_not_block_others(db, segments, subscriber, monkeypatch):
    store_stream(db, segments, "cnn-3100")
    db.replace_streams("user-1", compute_streams("user-1", [
        segments["cnn-3100"],
        Segment("cnn-x", 500, "Bay St",
                north_schedule=RecurringSchedule(2, "08:00", "10:00", "weekly")),
    ]), pacific(2025, 1, 1))

    original = db.get_stage_records

    def flaky(stream_key):
        streams = {s.street_name: s.stream_key for s in db.get_streams("user-1")}
        if stream_key == streams["Bay St"]:
            raise RuntimeError("store unavailable")
        return original(stream_key)

    monkeypatch.setattr(db, "get_stage_records", flaky)
    sms = FakeSMSClient()
    assert make_service(db, sms).check_and_notify(pacific(2025, 1, 7, 7, 5)) == 1


def test_uses_wall_clock_at_the_boundary(db, segments, subscriber):
    store_stream(db, segments)
    sms = FakeSMSClient()

    # 07:05 Pacific on Tuesday January 7
    with freeze_time("2025-01-07 15:05:00"):
        assert make_service(db, sms).check_and_notify(now_utc()) == 1

    assert "cleaning in 1 hr" in sms.sent[0][1]
