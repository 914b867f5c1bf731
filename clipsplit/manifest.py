"""JSON job manifest: the list of videos a batch run should process."""

import json
from dataclasses import dataclass, field
from pathlib import Path

from clipsplit.models import Segment, SegmentOptions

AUTO = "auto"


@dataclass
class VideoConfig:
    """One video to download and split."""

    id: str
    url: str
    title: str | None = None
    # Either explicit segments or AUTO for chapter-based splitting.
    segments: list[Segment] | str = AUTO
    options: SegmentOptions = field(default_factory=SegmentOptions)

    @property
    def auto_segments(self) -> bool:
        return self.segments == AUTO

    @property
    def display_title(self) -> str:
        return self.title or f"Video {self.id}"


def _parse_segments(raw, video_id: str) -> list[Segment] | str:
    if raw is None or raw == AUTO:
        return AUTO
    if not isinstance(raw, list):
        raise ValueError(f"Video {video_id!r}: 'segments' must be a list or \"auto\"")
    segments: list[Segment] = []
    for item in raw:
        if not isinstance(item, dict):
            raise ValueError(f"Video {video_id!r}: each segment must be an object")
        # Values are kept as given; normalization happens in the engine.
        segments.append(
            Segment(
                name=item.get("name"),
                start=None if item.get("start") is None else str(item["start"]),
                end=None if item.get("end") is None else str(item["end"]),
            )
        )
    return segments


def parse_video(data: dict) -> VideoConfig:
    if "id" not in data or "url" not in data:
        raise ValueError("Each video must contain 'id' and 'url' fields")
    video_id = str(data["id"])
    format_options = data.get("format_options", data.get("formatOptions"))
    return VideoConfig(
        id=video_id,
        url=str(data["url"]),
        title=data.get("title"),
        segments=_parse_segments(data.get("segments"), video_id),
        options=SegmentOptions.from_dict(format_options),
    )


def load_videos(path: str | Path) -> list[VideoConfig]:
    """Load and validate the video list from a JSON file."""
    path = Path(path)
    data = json.loads(path.read_text(encoding="utf-8"))

    if isinstance(data, dict):
        data = data.get("videos")
    if not isinstance(data, list):
        raise ValueError("Manifest must be a list of videos (or an object with a 'videos' list)")

    return [parse_video(item) for item in data]


def load_segments(path: str | Path) -> list[Segment]:
    """Load a bare list of segments, as used by ``clipsplit cut --segments-file``."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    segments = _parse_segments(data, str(path))
    if segments == AUTO:
        raise ValueError(f"{path}: expected a list of segments")
    return segments
