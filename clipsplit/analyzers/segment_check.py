"""Health check for produced segments: keyframes, timestamps, MP4 box layout."""

import struct
from dataclasses import dataclass, field
from pathlib import Path

from clipsplit import ffutil
from clipsplit.models import ProbeResult

# A first keyframe this close to zero counts as "at start".
KEYFRAME_START_TOLERANCE = 0.1

SEVERITY_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}

MP4_SUFFIXES = {".mp4", ".m4v", ".mov", ".m4a"}


@dataclass
class KeyframeInfo:
    count: int = 0
    first_at: float | None = None
    spacing_min: float = 0.0
    spacing_max: float = 0.0
    spacing_avg: float = 0.0

    @property
    def at_start(self) -> bool:
        return self.first_at is not None and self.first_at < KEYFRAME_START_TOLERANCE


@dataclass
class TimestampInfo:
    frames: int = 0
    discontinuities: int = 0
    negative: bool = False


@dataclass
class BoxLayout:
    """Order of the top-level MP4 boxes."""

    boxes: list[str] = field(default_factory=list)

    @property
    def has_moov(self) -> bool:
        return "moov" in self.boxes

    @property
    def moov_first(self) -> bool:
        """True when the index precedes the media data (faststart layout)."""
        if not self.has_moov:
            return False
        if "mdat" not in self.boxes:
            return True
        return self.boxes.index("moov") < self.boxes.index("mdat")


@dataclass
class Issue:
    severity: str
    issue: str
    solution: str


@dataclass
class SegmentReport:
    path: Path
    probe: ProbeResult | None
    keyframes: KeyframeInfo
    timestamps: TimestampInfo
    layout: BoxLayout | None
    issues: list[Issue] = field(default_factory=list)


def _float(value) -> float | None:
    if value in (None, "N/A"):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def analyze_keyframes(frames: list[dict]) -> KeyframeInfo:
    times = [
        t for t in (_float(f.get("pts_time")) for f in frames if int(f.get("key_frame", 0)) == 1)
        if t is not None
    ]
    if not times:
        return KeyframeInfo()

    spacings = [b - a for a, b in zip(times, times[1:])]
    return KeyframeInfo(
        count=len(times),
        first_at=times[0],
        spacing_min=min(spacings) if spacings else 0.0,
        spacing_max=max(spacings) if spacings else 0.0,
        spacing_avg=sum(spacings) / len(spacings) if spacings else 0.0,
    )


def analyze_timestamps(frames: list[dict]) -> TimestampInfo:
    info = TimestampInfo(frames=len(frames))
    previous = None
    for frame in frames:
        dts = _float(frame.get("pkt_dts_time"))
        if dts is None:
            continue
        if dts < 0:
            info.negative = True
        if previous is not None and dts < previous:
            info.discontinuities += 1
        previous = dts
    return info


def read_box_layout(path: Path) -> BoxLayout:
    """Walk the top-level boxes of an ISO-BMFF file without decoding them."""
    layout = BoxLayout()
    file_size = path.stat().st_size
    with path.open("rb") as f:
        offset = 0
        while offset + 8 <= file_size:
            f.seek(offset)
            header = f.read(8)
            if len(header) < 8:
                break
            size, box_type = struct.unpack(">I4s", header)
            header_len = 8
            if size == 1:
                large = f.read(8)
                if len(large) < 8:
                    break
                (size,) = struct.unpack(">Q", large)
                header_len = 16
            elif size == 0:
                size = file_size - offset
            if size < header_len:
                break
            layout.boxes.append(box_type.decode("latin-1"))
            offset += size
    return layout


def recommend(
    keyframes: KeyframeInfo, timestamps: TimestampInfo, layout: BoxLayout | None
) -> list[Issue]:
    issues: list[Issue] = []

    if not keyframes.at_start:
        issues.append(Issue(
            "high",
            "No keyframe at the start of the segment",
            "Re-encode the segment (force_encode) or cut at a keyframe boundary",
        ))

    if layout is not None:
        if not layout.has_moov:
            issues.append(Issue(
                "critical",
                "moov atom not found",
                "The file is likely truncated; re-encode or use the ts format",
            ))
        elif not layout.moov_first:
            issues.append(Issue(
                "medium",
                "moov atom is after the media data",
                "Remux with -movflags +faststart",
            ))

    if timestamps.discontinuities:
        issues.append(Issue(
            "high",
            f"{timestamps.discontinuities} timestamp discontinuities found",
            "Re-encode the segment or remux with -reset_timestamps 1",
        ))
    if timestamps.negative:
        issues.append(Issue(
            "medium",
            "Negative timestamps detected",
            "Remux with -avoid_negative_ts make_non_negative",
        ))

    issues.sort(key=lambda i: SEVERITY_ORDER[i.severity])
    return issues


def inspect_segment(path: Path) -> SegmentReport:
    """Probe *path* and collect everything needed to judge a cut."""
    path = Path(path)
    probe = ffutil.probe(path)
    frames = ffutil.probe_frames(path, "key_frame,pts_time,pkt_dts_time")
    keyframes = analyze_keyframes(frames)
    timestamps = analyze_timestamps(frames)
    layout = read_box_layout(path) if path.suffix.lower() in MP4_SUFFIXES else None
    return SegmentReport(
        path=path,
        probe=probe,
        keyframes=keyframes,
        timestamps=timestamps,
        layout=layout,
        issues=recommend(keyframes, timestamps, layout),
    )


def format_report(report: SegmentReport) -> str:
    lines = [f"File: {report.path}"]
    if report.probe:
        p = report.probe
        lines.append(f"  Duration: {p.duration:.2f}s  Container: {p.format_name or 'unknown'}")
        if p.codec_video:
            lines.append(f"  Video: {p.codec_video} {p.width}x{p.height} @ {p.fps or 0:.2f} fps")
        if p.codec_audio:
            lines.append(f"  Audio: {p.codec_audio}")

    k = report.keyframes
    first = f"{k.first_at:.3f}s" if k.first_at is not None else "N/A"
    lines.append(f"  Keyframes: {k.count} (first at {first})")
    if k.spacing_avg:
        lines.append(
            f"  Keyframe spacing: min={k.spacing_min:.3f}s max={k.spacing_max:.3f}s "
            f"avg={k.spacing_avg:.3f}s"
        )
    t = report.timestamps
    lines.append(f"  Frames: {t.frames}  DTS discontinuities: {t.discontinuities}  "
                 f"Negative timestamps: {'yes' if t.negative else 'no'}")
    if report.layout is not None:
        lines.append(f"  Top-level boxes: {' '.join(report.layout.boxes) or 'none'}")

    lines.append("")
    if not report.issues:
        lines.append("No issues detected.")
    for issue in report.issues:
        lines.append(f"[{issue.severity.upper()}] {issue.issue}")
        lines.append(f"    Solution: {issue.solution}")
    return "\n".join(lines)
