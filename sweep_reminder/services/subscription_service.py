"""Subscription service: selection changes, overview and acknowledgment"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, List

from ..engine.classifier import Categorized, categorize
from ..engine.streams import compute_streams
from ..storage.database import Database
from ..storage.models import NotificationStream, StageRecord
from ..utils.logger import setup_logger
from ..utils.timezone import CIVIL_TIMEZONE
from .segment_cache import SegmentCache

logger = setup_logger(__name__)


@dataclass
class Overview:
    """Everything the alerts page shows for one subscriber"""
    streams: Categorized
    active_alerts: List[StageRecord] = field(default_factory=list)


class SubscriptionService:
    """Service for subscriber-facing stream operations"""

    def __init__(
        self,
        database: Database,
        segment_cache: SegmentCache,
        tz: str = CIVIL_TIMEZONE
    ):
        """
        Initialize subscription service

        Args:
            database: Database instance
            segment_cache: Shared segment cache
            tz: Civil timezone name
        """
        self.database = database
        self.segment_cache = segment_cache
        self.tz = tz

    def update_selections(
        self,
        owner_id: str,
        segment_ids: Iterable[str],
        now: datetime
    ) -> List[NotificationStream]:
        """
        Recompute and store an owner's streams from their selected segments

        Args:
            owner_id: Subscriber ID
            segment_ids: All currently selected segment IDs
            now: Current time (naive UTC)

        Returns:
            The stored streams
        """
        segments = self.segment_cache.get_many(dict.fromkeys(segment_ids))
        streams = compute_streams(owner_id, segments)
        return self.database.replace_streams(owner_id, streams, now)

    def get_overview(self, owner_id: str, now: datetime) -> Overview:
        """Categorize an owner's streams and list their open alerts"""
        entries = [
            (stream, self.database.get_stage_records(stream.stream_key))
            for stream in self.database.get_streams(owner_id)
        ]
        return Overview(
            streams=categorize(entries, now, self.tz),
            active_alerts=self.database.get_active_alerts(owner_id, now),
        )

    def acknowledge(
        self,
        owner_id: str,
        stream_key: str,
        occurrence_date: date,
        now: datetime
    ) -> int:
        """
        Dismiss reminders for one occurrence of a stream

        Raises:
            StreamNotFoundError: No such stream
            StreamForbiddenError: Stream owned by someone else
        """
        return self.database.acknowledge(owner_id, stream_key, occurrence_date, now, self.tz)
