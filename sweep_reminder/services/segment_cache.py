"""Cache of ingested street segments and their cleaning schedules"""
import json
import re
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional
import requests

from ..storage.models import (
    FREQUENCY_1ST,
    FREQUENCY_1ST_3RD,
    FREQUENCY_2ND,
    FREQUENCY_2ND_4TH,
    FREQUENCY_3RD,
    FREQUENCY_4TH,
    FREQUENCY_WEEKLY,
    RecurringSchedule,
    Segment,
)
from ..utils.logger import setup_logger

logger = setup_logger(__name__)

WEEKS_TO_FREQUENCY = {
    (1, 2, 3, 4): FREQUENCY_WEEKLY,
    (1, 2, 3, 4, 5): FREQUENCY_WEEKLY,
    (1, 3): FREQUENCY_1ST_3RD,
    (2, 4): FREQUENCY_2ND_4TH,
    (1,): FREQUENCY_1ST,
    (2,): FREQUENCY_2ND,
    (3,): FREQUENCY_3RD,
    (4,): FREQUENCY_4TH,
}


def weeks_to_frequency(weeks: Iterable[int]) -> str:
    """
    Convert a weeksOfMonth list to a frequency

    Unknown combinations fall back to weekly (with a warning) rather than
    dropping the schedule.
    """
    key = tuple(sorted(set(int(week) for week in weeks)))
    frequency = WEEKS_TO_FREQUENCY.get(key)
    if frequency is None:
        logger.warning(f"Unrecognized weeksOfMonth {list(key)}, treating as weekly")
        return FREQUENCY_WEEKLY
    return frequency


def parse_block_number(from_address: str) -> int:
    """Leading address digits rounded down to the hundred"""
    match = re.match(r'^(\d+)', (from_address or "").strip())
    if not match:
        return 0
    return int(match.group(1)) // 100 * 100


def parse_segment(raw: Dict[str, Any]) -> Optional[Segment]:
    """
    Parse one segment entry of the ingest document

    Args:
        raw: Segment dict with cnn, streetName, fromAddress and schedules

    Returns:
        Segment, or None if the entry is unusable
    """
    segment_id = str(raw.get("cnn") or "")
    street_name = (raw.get("streetName") or "").strip()
    if not segment_id or not street_name:
        logger.warning(f"Skipping segment without id or street name: {raw.get('cnn')}")
        return None

    segment = Segment(
        segment_id=segment_id,
        block_number=parse_block_number(raw.get("fromAddress", "")),
        street_name=street_name,
    )

    for entry in raw.get("schedules", []):
        try:
            schedule = RecurringSchedule(
                day_of_week=int(entry["dayOfWeek"]),
                start_time=entry["startTime"],
                end_time=entry["endTime"],
                frequency=weeks_to_frequency(entry.get("weeksOfMonth", [])),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping invalid schedule on segment {segment_id}: {e}")
            continue

        # First listed schedule for a side wins
        side = (entry.get("side") or "Both").lower()
        if side in ("north", "both") and segment.north_schedule is None:
            segment.north_schedule = schedule
        if side in ("south", "both") and segment.south_schedule is None:
            segment.south_schedule = schedule

    return segment


class SegmentCache:
    """
    Segments loaded from a file or URL, reloaded after a TTL

    One instance is created per process and handed to the services that
    need segment data.
    """

    def __init__(
        self,
        source: str,
        ttl_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
        timeout: int = 30
    ):
        """
        Initialize segment cache

        Args:
            source: Path to the segments JSON file, or an http(s) URL
            ttl_seconds: Seconds a loaded copy stays fresh
            clock: Monotonic clock, injectable for tests
            timeout: HTTP timeout in seconds
        """
        self.source = source
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.timeout = timeout
        self._segments: Optional[Dict[str, Segment]] = None
        self._loaded_at: Optional[float] = None

    def get_segments(self) -> Dict[str, Segment]:
        """Get all segments keyed by segment ID, reloading when stale"""
        if self._segments is None or self._is_stale():
            self._segments = self._load()
            self._loaded_at = self.clock()
        return self._segments

    def get_many(self, segment_ids: Iterable[str]) -> List[Segment]:
        """Look up segments by ID, skipping unknown IDs"""
        segments = self.get_segments()
        found = []
        for segment_id in segment_ids:
            segment = segments.get(segment_id)
            if segment is None:
                logger.warning(f"Unknown segment ID: {segment_id}")
                continue
            found.append(segment)
        return found

    def invalidate(self):
        """Force the next access to reload"""
        self._segments = None
        self._loaded_at = None

    def _is_stale(self) -> bool:
        return self._loaded_at is None or self.clock() - self._loaded_at >= self.ttl_seconds

    def _load(self) -> Dict[str, Segment]:
        document = self._read_document()
        segments: Dict[str, Segment] = {}

        for raw in document.get("segments", []):
            segment = parse_segment(raw)
            if segment:
                segments[segment.segment_id] = segment

        logger.info(f"Loaded {len(segments)} segment(s) from {self.source}")
        return segments

    def _read_document(self) -> Dict[str, Any]:
        if self.source.startswith(("http://", "https://")):
            logger.debug(f"Fetching segments from {self.source}")
            response = requests.get(self.source, timeout=self.timeout)
            response.raise_for_status()
            return response.json()

        with open(Path(self.source), 'r', encoding='utf-8') as f:
            return json.load(f)
