"""Notification service for issuing due reminder stages"""
import asyncio
from datetime import datetime
from typing import Optional

from ..engine.occurrence import OccurrenceSearchError
from ..engine.stages import due_reminder
from ..storage.database import Database
from ..storage.models import NotificationStream, StageRecord
from ..utils.logger import setup_logger
from ..utils.timezone import CIVIL_TIMEZONE, now_utc
from .messages import build_reminder_message, format_time_range
from .sms_client import SMSClient

logger = setup_logger(__name__)


class NotificationService:
    """Service for issuing reminder stages for every stored stream"""

    def __init__(
        self,
        database: Database,
        sms_client: SMSClient,
        check_interval: int = 60,
        alerts_url: Optional[str] = None,
        tz: str = CIVIL_TIMEZONE
    ):
        """
        Initialize notification service

        Args:
            database: Database instance
            sms_client: SMS client instance
            check_interval: Seconds between checks
            alerts_url: Link appended to every message
            tz: Civil timezone name
        """
        self.database = database
        self.sms_client = sms_client
        self.check_interval = check_interval
        self.alerts_url = alerts_url
        self.tz = tz
        self.running = False

    async def start(self):
        """Start the notification checking loop"""
        self.running = True
        logger.info(f"Starting notification service (check every {self.check_interval}s)")

        while self.running:
            try:
                await asyncio.to_thread(self.check_and_notify, now_utc())
            except Exception as e:
                logger.error(f"Error in notification loop: {e}")

            await asyncio.sleep(self.check_interval)

    def stop(self):
        """Stop the notification checking loop"""
        self.running = False
        logger.info("Stopping notification service")

    def check_and_notify(self, now: datetime) -> int:
        """
        Issue every stage that is due at `now`

        A failing stream is logged and left for the next check; it does not
        stop the others.

        Returns:
            Number of reminders sent
        """
        sent = 0
        streams = self.database.get_all_streams()

        for stream in streams:
            try:
                if self._notify_stream(stream, now):
                    sent += 1
            except OccurrenceSearchError as e:
                logger.error(f"Invalid schedule on stream {stream.stream_key}: {e}")
            except Exception as e:
                logger.error(f"Error processing stream {stream.stream_key}: {e}")

        if sent:
            logger.info(f"Sent {sent} reminder(s)")
        return sent

    def _notify_stream(self, stream: NotificationStream, now: datetime) -> bool:
        """Issue the due stage of one stream, if any"""
        history = self.database.get_stage_records(stream.stream_key)
        due = due_reminder(stream.schedule, history, now, self.tz)
        if due is None:
            return False

        subscriber = self.database.get_subscriber(stream.owner_id)
        if subscriber is None:
            logger.warning(f"No phone number for owner {stream.owner_id}, skipping")
            return False

        record = StageRecord(
            owner_id=stream.owner_id,
            stream_key=stream.stream_key,
            occurrence_date=due.occurrence.date,
            occurrence_start=due.occurrence.start,
            occurrence_end=due.occurrence.end,
            stage=due.stage,
            issued_at=now
        )

        # Claim the stage first; another worker may already have it
        if not self.database.insert_stage_record(record):
            return False

        body = build_reminder_message(
            stream.street_name,
            stream.summary,
            format_time_range(stream.schedule),
            due.stage,
            self.alerts_url
        )

        if not self.sms_client.send_with_retry(subscriber.phone, body):
            # Release the claim so the next check retries
            self.database.delete_stage_record(stream.stream_key, due.occurrence.date, due.stage)
            return False

        logger.info(
            f"Sent {due.stage} reminder for {stream.street_name} {stream.summary} "
            f"(cleaning starts at {due.occurrence.start})"
        )
        return True
