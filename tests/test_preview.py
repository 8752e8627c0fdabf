from sweep_reminder.preview import build_parser, main, render_preview
from sweep_reminder.services.segment_cache import SegmentCache

from conftest import TZ, pacific


def test_parser_defaults():
    args = build_parser().parse_args(["cnn-2800"])
    assert args.segments == ["cnn-2800"]
    assert args.owner == "preview"
    assert args.at is None


def test_render_preview(segments_file):
    lines = render_preview("user-1", ["cnn-2900"], SegmentCache(str(segments_file)),
                           pacific(2025, 1, 5, 12), TZ)
    assert lines[0].startswith("Chestnut St 2900 (both sides) [")
    assert lines[0].endswith("upcoming")
    assert lines[1] == "  next: 8pm night before at Mon Jan 06 08:00 PM"
    assert "has street cleaning tomorrow 8:00 AM - 10:00 AM" in lines[2]


def test_main_prints_preview(segments_file, capsys):
    main(["cnn-2800", "--source", str(segments_file), "--at", "2025-01-07 07:15"])
    out = capsys.readouterr().out
    assert "Chestnut St 2800 (N side)" in out
    assert "ACTIVE" in out
    assert "30 minutes before" in out
