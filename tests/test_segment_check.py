"""Tests for the produced-segment health check."""

import struct
from pathlib import Path
from unittest.mock import patch

from clipsplit.analyzers.segment_check import (
    BoxLayout,
    KeyframeInfo,
    TimestampInfo,
    analyze_keyframes,
    analyze_timestamps,
    format_report,
    inspect_segment,
    read_box_layout,
    recommend,
)
from clipsplit.models import ProbeResult


def _box(kind: bytes, payload: bytes = b"") -> bytes:
    return struct.pack(">I4s", 8 + len(payload), kind) + payload


def _write(tmp_path: Path, name: str, *boxes: bytes) -> Path:
    path = tmp_path / name
    path.write_bytes(b"".join(boxes))
    return path


class TestAnalyzeKeyframes:
    def test_spacing(self):
        frames = [
            {"key_frame": 1, "pts_time": "0.000000"},
            {"key_frame": 0, "pts_time": "0.033"},
            {"key_frame": 1, "pts_time": "2.0"},
            {"key_frame": 1, "pts_time": "6.0"},
        ]
        info = analyze_keyframes(frames)
        assert info.count == 3
        assert info.first_at == 0.0
        assert info.at_start
        assert info.spacing_min == 2.0
        assert info.spacing_max == 4.0
        assert info.spacing_avg == 3.0

    def test_late_first_keyframe(self):
        info = analyze_keyframes([{"key_frame": 0, "pts_time": "0"}, {"key_frame": 1, "pts_time": "1.5"}])
        assert info.first_at == 1.5
        assert not info.at_start

    def test_no_keyframes(self):
        info = analyze_keyframes([{"key_frame": 0, "pts_time": "N/A"}])
        assert info.count == 0
        assert not info.at_start


class TestAnalyzeTimestamps:
    def test_monotonic(self):
        frames = [{"pkt_dts_time": str(t)} for t in (0.0, 0.04, 0.08)]
        info = analyze_timestamps(frames)
        assert info.frames == 3
        assert info.discontinuities == 0
        assert not info.negative

    def test_backwards_and_negative(self):
        frames = [
            {"pkt_dts_time": "-0.08"},
            {"pkt_dts_time": "0.04"},
            {"pkt_dts_time": "0.00"},
            {"pkt_dts_time": "N/A"},
            {"pkt_dts_time": "0.08"},
        ]
        info = analyze_timestamps(frames)
        assert info.discontinuities == 1
        assert info.negative


class TestReadBoxLayout:
    def test_faststart_layout(self, tmp_path: Path):
        path = _write(tmp_path, "a.mp4", _box(b"ftyp", b"isom"), _box(b"moov", b"\0" * 16), _box(b"mdat", b"\1" * 32))
        layout = read_box_layout(path)
        assert layout.boxes == ["ftyp", "moov", "mdat"]
        assert layout.moov_first

    def test_index_at_end(self, tmp_path: Path):
        path = _write(tmp_path, "b.mp4", _box(b"ftyp"), _box(b"mdat", b"\1" * 32), _box(b"moov"))
        layout = read_box_layout(path)
        assert layout.has_moov
        assert not layout.moov_first

    def test_truncated_file(self, tmp_path: Path):
        # mdat claims more bytes than the file holds; the walk stops there
        header = struct.pack(">I4s", 4096, b"mdat")
        path = _write(tmp_path, "c.mp4", _box(b"ftyp"), header + b"\1" * 10)
        layout = read_box_layout(path)
        assert layout.boxes == ["ftyp", "mdat"]
        assert not layout.has_moov

    def test_large_size_header(self, tmp_path: Path):
        large = struct.pack(">I4sQ", 1, b"mdat", 16 + 4) + b"\1" * 4
        path = _write(tmp_path, "d.mp4", _box(b"ftyp"), large, _box(b"moov"))
        assert read_box_layout(path).boxes == ["ftyp", "mdat", "moov"]


class TestRecommend:
    def test_clean_segment(self):
        keyframes = KeyframeInfo(count=3, first_at=0.0)
        assert recommend(keyframes, TimestampInfo(frames=10), BoxLayout(["ftyp", "moov", "mdat"])) == []

    def test_sorted_by_severity(self):
        issues = recommend(
            KeyframeInfo(count=1, first_at=2.0),
            TimestampInfo(frames=10, discontinuities=2, negative=True),
            BoxLayout(["ftyp", "mdat"]),
        )
        assert [i.severity for i in issues] == ["critical", "high", "high", "medium"]
        assert issues[0].issue == "moov atom not found"
        assert "2 timestamp discontinuities" in issues[2].issue

    def test_late_index_suggests_faststart(self):
        issues = recommend(KeyframeInfo(count=1, first_at=0.0), TimestampInfo(), BoxLayout(["mdat", "moov"]))
        assert len(issues) == 1
        assert "+faststart" in issues[0].solution

    def test_no_layout_for_non_mp4(self):
        assert recommend(KeyframeInfo(count=1, first_at=0.0), TimestampInfo(), None) == []


class TestInspectSegment:
    @patch("clipsplit.analyzers.segment_check.ffutil.probe_frames")
    @patch("clipsplit.analyzers.segment_check.ffutil.probe")
    def test_report(self, mock_probe, mock_frames, tmp_path: Path):
        path = _write(tmp_path, "Intro.mp4", _box(b"ftyp"), _box(b"moov"), _box(b"mdat"))
        mock_probe.return_value = ProbeResult(duration=90.0, codec_video="h264", width=1280, height=720, fps=30.0)
        mock_frames.return_value = [
            {"key_frame": 1, "pts_time": "0.0", "pkt_dts_time": "0.0"},
            {"key_frame": 0, "pts_time": "0.033", "pkt_dts_time": "0.033"},
        ]

        report = inspect_segment(path)

        assert report.issues == []
        assert report.layout.boxes == ["ftyp", "moov", "mdat"]
        text = format_report(report)
        assert "Duration: 90.00s" in text
        assert "No issues detected." in text

    @patch("clipsplit.analyzers.segment_check.ffutil.probe_frames", return_value=[])
    @patch("clipsplit.analyzers.segment_check.ffutil.probe")
    def test_mkv_skips_box_walk(self, mock_probe, mock_frames, tmp_path: Path):
        path = tmp_path / "Intro.mkv"
        path.write_bytes(b"\x1a\x45\xdf\xa3")
        mock_probe.return_value = ProbeResult(duration=5.0)

        report = inspect_segment(path)

        assert report.layout is None
        assert "[HIGH] No keyframe at the start of the segment" in format_report(report)
