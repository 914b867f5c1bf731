"""Exception types raised across clipsplit."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from clipsplit.models import SegmentationRun, SegmentFailed


class ClipSplitError(Exception):
    """Base class for all clipsplit errors."""


class ParseError(ClipSplitError, ValueError):
    """A timestamp could not be parsed."""


class UnsupportedEnumError(ClipSplitError, ValueError):
    """A format or quality value outside the supported set was requested."""


class InvalidSegmentError(ClipSplitError):
    """A segment has unusable bounds (unparseable or non-positive duration)."""


class ToolInvocationError(ClipSplitError):
    """ffmpeg exited non-zero or reported a fatal diagnostic."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class DownloadError(ClipSplitError):
    """The remote video could not be fetched or inspected."""


class SegmentationError(ClipSplitError):
    """One or more segments of a video could not be produced."""

    def __init__(self, run: SegmentationRun):
        self.run = run
        self.failures: list[SegmentFailed] = list(run.failures)
        lines = [f"{len(self.failures)} of {len(run.segments)} segments failed:"]
        lines.extend(f"  {f.describe()}" for f in self.failures)
        super().__init__("\n".join(lines))

    @property
    def partial_outputs(self):
        return [p for p in self.run.outputs if p is not None]
