"""Shared data types used across clipsplit."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from clipsplit.errors import UnsupportedEnumError


class OutputFormat(str, Enum):
    MP4 = "mp4"
    MKV = "mkv"
    WEBM = "webm"
    TS = "ts"


class Quality(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def coerce_format(value: "OutputFormat | str") -> OutputFormat:
    try:
        return OutputFormat(value)
    except ValueError:
        choices = ", ".join(f.value for f in OutputFormat)
        raise UnsupportedEnumError(f"Unsupported format {value!r} (expected one of: {choices})") from None


def coerce_quality(value: "Quality | str") -> Quality:
    try:
        return Quality(value)
    except ValueError:
        choices = ", ".join(q.value for q in Quality)
        raise UnsupportedEnumError(f"Unsupported quality {value!r} (expected one of: {choices})") from None


@dataclass(frozen=True)
class Segment:
    """A requested cut, as read from configuration. Any field may be missing."""

    name: str | None = None
    start: str | None = None
    end: str | None = None


@dataclass(frozen=True)
class NormalizedSegment:
    """A segment with every field populated; ``file_stem`` is filesystem-safe."""

    index: int
    name: str
    file_stem: str
    start: str
    end: str


@dataclass(frozen=True)
class SegmentOptions:
    """Output container and encoding preferences for one segmentation call."""

    format: OutputFormat = OutputFormat.MP4
    quality: Quality = Quality.MEDIUM
    force_encode: bool = False
    audio_only: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "format", coerce_format(self.format))
        object.__setattr__(self, "quality", coerce_quality(self.quality))

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "SegmentOptions":
        """Build options from a manifest entry (snake_case or camelCase keys)."""
        data = data or {}
        return cls(
            format=data.get("format") or OutputFormat.MP4,
            quality=data.get("quality") or Quality.MEDIUM,
            force_encode=bool(data.get("force_encode", data.get("forceEncode", False))),
            audio_only=bool(data.get("audio_only", data.get("audioOnly", False))),
        )


@dataclass(frozen=True)
class Strategy:
    """One entry in a segment's fallback chain."""

    name: str
    stream_copy: bool


@dataclass
class AttemptResult:
    """Outcome of running one strategy against one segment."""

    index: int
    strategy: str
    success: bool
    output_path: Path | None = None
    error: str | None = None


@dataclass
class SegmentFailed:
    """Terminal failure of one segment after all strategies were tried."""

    index: int
    name: str
    strategies: list[str]
    last_error: str

    def describe(self) -> str:
        tried = ", ".join(self.strategies) if self.strategies else "none"
        return (
            f"segment {self.index + 1} ({self.name}): tried [{tried}]; "
            f"last error: {self.last_error}"
        )


@dataclass
class SegmentationRun:
    """Aggregate state of one segment_all call."""

    input_path: Path
    output_dir: Path
    segments: list[Segment]
    options: SegmentOptions
    outputs: list[Path | None] = field(default_factory=list)
    failures: list[SegmentFailed] = field(default_factory=list)
    attempts: list[AttemptResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass(frozen=True)
class Chapter:
    """A named time range reported by the source's metadata."""

    name: str | None
    start_time: float
    end_time: float | None = None


@dataclass
class ProbeResult:
    """Metadata extracted from a media file via ffprobe."""

    duration: float
    width: int | None = None
    height: int | None = None
    fps: float | None = None
    codec_video: str | None = None
    codec_audio: str | None = None
    audio_sample_rate: int | None = None
    format_name: str | None = None
