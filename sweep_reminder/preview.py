"""Preview streams and upcoming reminders for a set of segments"""
import argparse
import sys
from datetime import datetime
from typing import List, Optional

from .engine.classifier import categorize
from .engine.occurrence import OccurrenceSearchError
from .engine.streams import compute_streams
from .services.messages import STAGE_LABELS, build_reminder_message, format_time_range
from .services.segment_cache import SegmentCache
from .utils.logger import setup_logger
from .utils.timezone import CIVIL_TIMEZONE, now_utc, to_civil, to_utc

logger = setup_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Preview reminder streams for selected street segments"
    )
    parser.add_argument(
        "segments",
        nargs="+",
        help="Segment IDs to select"
    )
    parser.add_argument(
        "--source",
        type=str,
        default="data/street-segments.json",
        help="Segments JSON file or URL (default: data/street-segments.json)"
    )
    parser.add_argument(
        "--owner",
        type=str,
        default="preview",
        help="Owner ID used for stream keys (default: 'preview')"
    )
    parser.add_argument(
        "--at",
        type=str,
        default=None,
        help="Civil date/time to evaluate at, e.g. '2025-01-06 21:00' (default: now)"
    )
    parser.add_argument(
        "--timezone",
        type=str,
        default=CIVIL_TIMEZONE,
        help=f"Civil time zone (default: {CIVIL_TIMEZONE})"
    )
    return parser


def render_preview(
    owner_id: str,
    segment_ids: List[str],
    cache: SegmentCache,
    now: datetime,
    tz: str = CIVIL_TIMEZONE
) -> List[str]:
    """
    Render one block of lines per stream

    Args:
        owner_id: Owner ID for stream keys
        segment_ids: Selected segment IDs
        cache: Segment cache to resolve IDs
        now: Evaluation instant (naive UTC)
        tz: Civil timezone name

    Returns:
        Output lines
    """
    streams = compute_streams(owner_id, cache.get_many(segment_ids))
    categorized = categorize([(stream, []) for stream in streams], now, tz)
    active_keys = {view.stream.stream_key for view in categorized.active}
    upcoming_keys = {view.stream.stream_key for view in categorized.upcoming}

    lines = []
    for view in categorized.all:
        stream = view.stream
        if stream.stream_key in active_keys:
            status = "ACTIVE"
        elif stream.stream_key in upcoming_keys:
            status = "upcoming"
        else:
            status = "scheduled"

        lines.append(f"{stream.street_name} {stream.summary} [{stream.stream_key}] {status}")
        if view.next_reminder_at is None:
            lines.append("  no further reminders")
            continue

        when = to_civil(view.next_reminder_at, tz).strftime("%a %b %d %I:%M %p")
        lines.append(f"  next: {STAGE_LABELS[view.next_reminder_stage]} at {when}")
        lines.append("  message: " + build_reminder_message(
            stream.street_name,
            stream.summary,
            format_time_range(stream.schedule),
            view.next_reminder_stage
        ))

    return lines


def main(argv: Optional[List[str]] = None):
    """Main entry point"""
    args = build_parser().parse_args(argv)

    if args.at:
        try:
            now = to_utc(datetime.strptime(args.at, "%Y-%m-%d %H:%M"), args.timezone)
        except ValueError as e:
            logger.error(f"Invalid --at value: {e}")
            sys.exit(2)
    else:
        now = now_utc()

    cache = SegmentCache(args.source)
    try:
        lines = render_preview(args.owner, args.segments, cache, now, args.timezone)
    except OccurrenceSearchError as e:
        logger.error(f"Schedule error: {e}")
        sys.exit(1)

    if not lines:
        logger.warning("No streams for the selected segments")
    for line in lines:
        print(line)


if __name__ == "__main__":
    main()
