"""SQLite database operations"""
import json
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import List, Optional

from ..utils.logger import setup_logger
from ..utils.timezone import CIVIL_TIMEZONE, combine_civil
from .models import (
    STAGE_NIGHT_BEFORE,
    NotificationStream,
    RecurringSchedule,
    StageRecord,
    StreamMember,
    Subscriber,
)

logger = setup_logger(__name__)


class AcknowledgeError(Exception):
    """Base class for acknowledge failures"""


class StreamNotFoundError(AcknowledgeError):
    """No stream exists for the given key"""


class StreamForbiddenError(AcknowledgeError):
    """The stream belongs to another owner"""


class Database:
    """SQLite database manager for streams, stage records and subscribers"""

    def __init__(self, db_path: str = "data/reminders.db"):
        """Initialize database connection"""
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        """Create tables if they don't exist"""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            # Streams table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS streams (
                    stream_key TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    street_name TEXT NOT NULL,
                    schedule TEXT NOT NULL,
                    members TEXT NOT NULL,
                    summary TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            # Stage records table; one row per stream, occurrence date and stage
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS stage_records (
                    stream_key TEXT NOT NULL,
                    owner_id TEXT NOT NULL,
                    occurrence_date TEXT NOT NULL,
                    occurrence_start TEXT NOT NULL,
                    occurrence_end TEXT NOT NULL,
                    stage TEXT NOT NULL,
                    issued_at TEXT NOT NULL,
                    acknowledged INTEGER NOT NULL DEFAULT 0,
                    acknowledged_at TEXT,
                    PRIMARY KEY (stream_key, occurrence_date, stage)
                )
            """)

            # Subscribers table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS subscribers (
                    owner_id TEXT PRIMARY KEY,
                    phone TEXT NOT NULL
                )
            """)

            # Indexes for performance
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_streams_owner_id
                ON streams(owner_id)
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_stage_records_occurrence_end
                ON stage_records(occurrence_end)
            """)

            conn.commit()

    @contextmanager
    def _get_connection(self):
        """Get database connection with context manager"""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    # Subscribers

    def upsert_subscriber(self, subscriber: Subscriber):
        """Insert or update a subscriber's phone number"""
        with self._get_connection() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO subscribers (owner_id, phone)
                VALUES (?, ?)
            """, (subscriber.owner_id, subscriber.phone))
            conn.commit()

    def get_subscriber(self, owner_id: str) -> Optional[Subscriber]:
        """Get a subscriber by owner ID"""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM subscribers WHERE owner_id = ?", (owner_id,)
            ).fetchone()
            if row:
                return Subscriber(owner_id=row['owner_id'], phone=row['phone'])
            return None

    # Streams

    def replace_streams(
        self,
        owner_id: str,
        streams: List[NotificationStream],
        now: datetime
    ) -> List[NotificationStream]:
        """
        Replace an owner's streams with a freshly computed set

        Streams are upserted by stream_key; an existing stream keeps its
        created_at. Streams whose key is not in the new set are deleted along
        with their stage records.

        Args:
            owner_id: Subscriber ID
            streams: Recomputed streams for the owner
            now: Timestamp for created_at/updated_at (naive UTC)

        Returns:
            The stored streams with timestamps filled in
        """
        new_keys = {stream.stream_key for stream in streams}
        stored = []

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT stream_key, created_at FROM streams WHERE owner_id = ?",
                (owner_id,)
            )
            existing = {row['stream_key']: row['created_at'] for row in cursor.fetchall()}

            stale_keys = [key for key in existing if key not in new_keys]
            for key in stale_keys:
                cursor.execute("DELETE FROM streams WHERE stream_key = ?", (key,))
                cursor.execute("DELETE FROM stage_records WHERE stream_key = ?", (key,))

            for stream in streams:
                if stream.stream_key in existing:
                    created_at = datetime.fromisoformat(existing[stream.stream_key])
                else:
                    created_at = now

                cursor.execute("""
                    INSERT OR REPLACE INTO streams
                    (stream_key, owner_id, street_name, schedule, members, summary,
                     created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    stream.stream_key,
                    owner_id,
                    stream.street_name,
                    json.dumps(stream.schedule.to_dict()),
                    json.dumps([member.to_dict() for member in stream.members]),
                    stream.summary,
                    created_at.isoformat(),
                    now.isoformat()
                ))

                stored.append(NotificationStream(
                    owner_id=owner_id,
                    stream_key=stream.stream_key,
                    street_name=stream.street_name,
                    schedule=stream.schedule,
                    members=list(stream.members),
                    summary=stream.summary,
                    created_at=created_at,
                    updated_at=now
                ))

            conn.commit()

        logger.info(
            f"Stored {len(stored)} stream(s) for owner {owner_id}, "
            f"removed {len(stale_keys)}"
        )
        return stored

    def get_stream(self, stream_key: str) -> Optional[NotificationStream]:
        """Get a stream by key"""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM streams WHERE stream_key = ?", (stream_key,)
            ).fetchone()
            if row:
                return self._row_to_stream(row)
            return None

    def get_streams(self, owner_id: str) -> List[NotificationStream]:
        """Get all streams for an owner"""
        with self._get_connection() as conn:
            cursor = conn.execute("""
                SELECT * FROM streams
                WHERE owner_id = ?
                ORDER BY street_name ASC, stream_key ASC
            """, (owner_id,))
            return [self._row_to_stream(row) for row in cursor.fetchall()]

    def get_all_streams(self) -> List[NotificationStream]:
        """Get every stored stream"""
        with self._get_connection() as conn:
            cursor = conn.execute("SELECT * FROM streams ORDER BY owner_id, stream_key")
            return [self._row_to_stream(row) for row in cursor.fetchall()]

    # Stage records

    def insert_stage_record(self, record: StageRecord) -> bool:
        """
        Insert a stage record

        Returns:
            True if inserted, False if a record for the same stream,
            occurrence date and stage already exists
        """
        try:
            with self._get_connection() as conn:
                conn.execute("""
                    INSERT INTO stage_records
                    (stream_key, owner_id, occurrence_date, occurrence_start,
                     occurrence_end, stage, issued_at, acknowledged, acknowledged_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, self._record_params(record))
                conn.commit()
        except sqlite3.IntegrityError:
            logger.debug(
                f"Stage {record.stage} for {record.stream_key} on "
                f"{record.occurrence_date} already recorded"
            )
            return False
        return True

    def delete_stage_record(self, stream_key: str, occurrence_date: date, stage: str):
        """Release a claimed stage record so it can be issued again"""
        with self._get_connection() as conn:
            conn.execute("""
                DELETE FROM stage_records
                WHERE stream_key = ? AND occurrence_date = ? AND stage = ?
                AND acknowledged = 0
            """, (stream_key, occurrence_date.isoformat(), stage))
            conn.commit()

    def get_stage_records(self, stream_key: str) -> List[StageRecord]:
        """Get the stage records for a stream"""
        with self._get_connection() as conn:
            cursor = conn.execute("""
                SELECT * FROM stage_records
                WHERE stream_key = ?
                ORDER BY occurrence_date ASC, issued_at ASC
            """, (stream_key,))
            return [self._row_to_record(row) for row in cursor.fetchall()]

    def get_active_alerts(self, owner_id: str, now: datetime) -> List[StageRecord]:
        """Unacknowledged records whose cleaning has not ended yet"""
        with self._get_connection() as conn:
            cursor = conn.execute("""
                SELECT * FROM stage_records
                WHERE owner_id = ? AND acknowledged = 0 AND occurrence_end > ?
                ORDER BY occurrence_start ASC
            """, (owner_id, now.isoformat()))
            return [self._row_to_record(row) for row in cursor.fetchall()]

    def acknowledge(
        self,
        owner_id: str,
        stream_key: str,
        occurrence_date: date,
        now: datetime,
        tz: str = CIVIL_TIMEZONE
    ) -> int:
        """
        Acknowledge every reminder for one stream and occurrence date

        If nothing was issued yet, an acknowledged night_before placeholder
        is written so later evaluations treat the occurrence as settled.

        Args:
            owner_id: Subscriber acknowledging
            stream_key: Stream key
            occurrence_date: Civil date of the cleaning
            now: Acknowledge timestamp (naive UTC)
            tz: Civil timezone name

        Returns:
            Number of records changed or inserted; 0 if already acknowledged

        Raises:
            StreamNotFoundError: No such stream
            StreamForbiddenError: Stream owned by someone else
        """
        stream = self.get_stream(stream_key)
        if stream is None:
            raise StreamNotFoundError(f"Stream {stream_key} not found")
        if stream.owner_id != owner_id:
            raise StreamForbiddenError(f"Stream {stream_key} does not belong to {owner_id}")

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT COUNT(*) FROM stage_records
                WHERE stream_key = ? AND occurrence_date = ?
            """, (stream_key, occurrence_date.isoformat()))
            existing = cursor.fetchone()[0]

            if existing:
                cursor.execute("""
                    UPDATE stage_records
                    SET acknowledged = 1, acknowledged_at = ?
                    WHERE stream_key = ? AND occurrence_date = ? AND acknowledged = 0
                """, (now.isoformat(), stream_key, occurrence_date.isoformat()))
                changed = cursor.rowcount
            else:
                placeholder = StageRecord(
                    owner_id=owner_id,
                    stream_key=stream_key,
                    occurrence_date=occurrence_date,
                    occurrence_start=combine_civil(occurrence_date, stream.schedule.start_time, tz),
                    occurrence_end=combine_civil(occurrence_date, stream.schedule.end_time, tz),
                    stage=STAGE_NIGHT_BEFORE,
                    issued_at=now,
                    acknowledged=True,
                    acknowledged_at=now
                )
                cursor.execute("""
                    INSERT OR IGNORE INTO stage_records
                    (stream_key, owner_id, occurrence_date, occurrence_start,
                     occurrence_end, stage, issued_at, acknowledged, acknowledged_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, self._record_params(placeholder))
                changed = cursor.rowcount

            conn.commit()

        logger.info(
            f"Acknowledged {stream_key} on {occurrence_date.isoformat()} "
            f"({changed} record(s) changed)"
        )
        return changed

    def prune_old_records(self, now: datetime, days: int = 30) -> int:
        """Remove stage records for cleanings that ended more than `days` ago"""
        cutoff = now - timedelta(days=days)
        with self._get_connection() as conn:
            cursor = conn.execute("""
                DELETE FROM stage_records
                WHERE occurrence_end < ?
            """, (cutoff.isoformat(),))
            conn.commit()
            return cursor.rowcount

    def _record_params(self, record: StageRecord) -> tuple:
        return (
            record.stream_key,
            record.owner_id,
            record.occurrence_date.isoformat(),
            record.occurrence_start.isoformat(),
            record.occurrence_end.isoformat(),
            record.stage,
            record.issued_at.isoformat(),
            1 if record.acknowledged else 0,
            record.acknowledged_at.isoformat() if record.acknowledged_at else None
        )

    def _row_to_stream(self, row: sqlite3.Row) -> NotificationStream:
        """Convert database row to NotificationStream object"""
        return NotificationStream(
            owner_id=row['owner_id'],
            stream_key=row['stream_key'],
            street_name=row['street_name'],
            schedule=RecurringSchedule.from_dict(json.loads(row['schedule'])),
            members=[StreamMember.from_dict(item) for item in json.loads(row['members'])],
            summary=row['summary'],
            created_at=datetime.fromisoformat(row['created_at']),
            updated_at=datetime.fromisoformat(row['updated_at'])
        )

    def _row_to_record(self, row: sqlite3.Row) -> StageRecord:
        """Convert database row to StageRecord object"""
        return StageRecord(
            owner_id=row['owner_id'],
            stream_key=row['stream_key'],
            occurrence_date=date.fromisoformat(row['occurrence_date']),
            occurrence_start=datetime.fromisoformat(row['occurrence_start']),
            occurrence_end=datetime.fromisoformat(row['occurrence_end']),
            stage=row['stage'],
            issued_at=datetime.fromisoformat(row['issued_at']),
            acknowledged=bool(row['acknowledged']),
            acknowledged_at=(
                datetime.fromisoformat(row['acknowledged_at'])
                if row['acknowledged_at'] else None
            )
        )
