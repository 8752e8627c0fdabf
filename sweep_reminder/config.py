"""Configuration loading and validation"""
import os
from typing import Optional
import pytz
from dotenv import load_dotenv

from .utils.logger import setup_logger
from .utils.timezone import CIVIL_TIMEZONE

logger = setup_logger(__name__)

# Load environment variables from .env file
load_dotenv()


class Config:
    """Application configuration"""

    def __init__(self):
        """Load and validate configuration"""
        # Twilio configuration
        self.twilio_account_sid = self._get_required("TWILIO_ACCOUNT_SID")
        self.twilio_auth_token = self._get_required("TWILIO_AUTH_TOKEN")
        self.twilio_from_number = self._get_required("TWILIO_FROM_NUMBER")

        # Civil time zone all schedules are expressed in
        self.civil_timezone = os.getenv("CIVIL_TIMEZONE", CIVIL_TIMEZONE)

        # Storage
        self.database_path = os.getenv("DATABASE_PATH", "data/reminders.db")
        self.record_retention_days = int(os.getenv("RECORD_RETENTION_DAYS", "30"))

        # Segment data from the ingest job (file path or URL)
        self.segments_source = os.getenv("SEGMENTS_SOURCE", "data/street-segments.json")
        self.segments_cache_ttl = int(os.getenv("SEGMENTS_CACHE_TTL", "60"))

        # Notification settings
        self.check_interval = int(os.getenv("CHECK_INTERVAL", "60"))
        self.alerts_base_url: Optional[str] = os.getenv("ALERTS_BASE_URL") or None

        self._validate()
        logger.info("Configuration loaded successfully")

    def _get_required(self, key: str) -> str:
        """Get required environment variable"""
        value = os.getenv(key)
        if not value:
            raise ValueError(f"Required environment variable {key} is not set")
        return value

    def _validate(self):
        """Validate configuration values"""
        if self.check_interval < 1:
            raise ValueError("CHECK_INTERVAL must be at least 1 second")

        if self.segments_cache_ttl < 0:
            raise ValueError("SEGMENTS_CACHE_TTL must be non-negative")

        if self.record_retention_days < 1:
            raise ValueError("RECORD_RETENTION_DAYS must be at least 1 day")

        if not self.twilio_from_number.startswith("+"):
            raise ValueError("TWILIO_FROM_NUMBER must be in E.164 format (+14155551234)")

        try:
            pytz.timezone(self.civil_timezone)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"CIVIL_TIMEZONE {self.civil_timezone!r} is not a known time zone")

        logger.info(f"Civil time zone: {self.civil_timezone}")
        logger.info(f"Check interval: {self.check_interval} seconds")
        logger.info(f"Segments source: {self.segments_source}")
