import pytest

from sweep_reminder.config import Config

REQUIRED = {
    "TWILIO_ACCOUNT_SID": "AC123",
    "TWILIO_AUTH_TOKEN": "secret",
    "TWILIO_FROM_NUMBER": "+14155550000",
}

OPTIONAL = [
    "CIVIL_TIMEZONE", "DATABASE_PATH", "RECORD_RETENTION_DAYS", "SEGMENTS_SOURCE",
    "SEGMENTS_CACHE_TTL", "CHECK_INTERVAL", "ALERTS_BASE_URL",
]


@pytest.fixture
def env(monkeypatch):
    for key in OPTIONAL:
        monkeypatch.delenv(key, raising=False)
    for key, value in REQUIRED.items():
        monkeypatch.setenv(key, value)
    return monkeypatch


def test_defaults(env):
    config = Config()
    assert config.civil_timezone == "America/Los_Angeles"
    assert config.database_path == "data/reminders.db"
    assert config.check_interval == 60
    assert config.segments_cache_ttl == 60
    assert config.record_retention_days == 30
    assert config.alerts_base_url is None


def test_overrides(env):
    env.setenv("CIVIL_TIMEZONE", "America/Chicago")
    env.setenv("CHECK_INTERVAL", "30")
    env.setenv("ALERTS_BASE_URL", "https://example.org/alerts")
    config = Config()
    assert config.civil_timezone == "America/Chicago"
    assert config.check_interval == 30
    assert config.alerts_base_url == "https://example.org/alerts"


def test_missing_required_value(env):
    env.delenv("TWILIO_AUTH_TOKEN")
    with pytest.raises(ValueError, match="TWILIO_AUTH_TOKEN"):
        Config()


@pytest.mark.parametrize("key,value", [
    ("CHECK_INTERVAL", "0"),
    ("RECORD_RETENTION_DAYS", "0"),
    ("SEGMENTS_CACHE_TTL", "-1"),
    ("TWILIO_FROM_NUMBER", "4155550000"),
    ("CIVIL_TIMEZONE", "Mars/Olympus"),
])
def test_invalid_values(env, key, value):
    env.setenv(key, value)
    with pytest.raises(ValueError):
        Config()
