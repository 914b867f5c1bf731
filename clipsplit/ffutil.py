"""FFmpeg/ffprobe subprocess helpers."""

import json
import logging
import re
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Callable

from clipsplit.errors import ToolInvocationError
from clipsplit.models import ProbeResult

logger = logging.getLogger(__name__)

# Diagnostics that mean the output is unusable even if ffmpeg exits 0.
FATAL_PATTERNS = [
    re.compile(r"moov atom not found", re.IGNORECASE),
    re.compile(r"non-monotonous dts", re.IGNORECASE),
    re.compile(r"non monotonically increasing dts", re.IGNORECASE),
    re.compile(r"invalid data found when processing input", re.IGNORECASE),
]

STDERR_TAIL_LINES = 5


class FFmpegNotFoundError(RuntimeError):
    pass


def check_ffmpeg() -> None:
    """Raise FFmpegNotFoundError if ffmpeg/ffprobe are not on PATH."""
    for cmd in ("ffmpeg", "ffprobe"):
        if shutil.which(cmd) is None:
            raise FFmpegNotFoundError(f"{cmd} not found on PATH")


def probe(input_path: Path) -> ProbeResult:
    """Extract media metadata via ffprobe."""
    cmd = [
        "ffprobe",
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(input_path),
    ]
    result = subprocess.run(cmd, capture_output=True, text=True, errors="replace", check=True)
    data = json.loads(result.stdout)

    streams = data.get("streams", [])
    video_stream = next((s for s in streams if s.get("codec_type") == "video"), None)
    audio_stream = next((s for s in streams if s.get("codec_type") == "audio"), None)

    if video_stream is None and audio_stream is None:
        raise ValueError(f"No audio or video stream found in {input_path}")

    fps = None
    width = height = None
    codec_video = None
    if video_stream is not None:
        # r_frame_rate looks like "30/1"
        num, _, den = video_stream.get("r_frame_rate", "0/1").partition("/")
        if den and int(den):
            fps = int(num) / int(den)
        width = int(video_stream["width"]) if "width" in video_stream else None
        height = int(video_stream["height"]) if "height" in video_stream else None
        codec_video = video_stream.get("codec_name")

    fmt = data.get("format", {})
    return ProbeResult(
        duration=float(fmt.get("duration", 0.0)),
        width=width,
        height=height,
        fps=fps,
        codec_video=codec_video,
        codec_audio=audio_stream.get("codec_name") if audio_stream else None,
        audio_sample_rate=(
            int(audio_stream["sample_rate"])
            if audio_stream and "sample_rate" in audio_stream
            else None
        ),
        format_name=fmt.get("format_name"),
    )


def probe_frames(input_path: Path, entries: str) -> list[dict]:
    """Return per-frame ffprobe data for the first video stream."""
    cmd = [
        "ffprobe",
        "-v", "error",
        "-select_streams", "v:0",
        "-show_entries", f"frame={entries}",
        "-of", "json",
        str(input_path),
    ]
    result = subprocess.run(cmd, capture_output=True, text=True, errors="replace", check=True)
    return json.loads(result.stdout).get("frames", [])


def find_fatal_diagnostic(stderr: str) -> str | None:
    """Return the first stderr line matching a known fatal pattern."""
    for line in stderr.splitlines():
        if any(p.search(line) for p in FATAL_PATTERNS):
            return line.strip()
    return None


def stderr_tail(stderr: str, lines: int = STDERR_TAIL_LINES) -> str:
    kept = [ln.strip() for ln in stderr.strip().splitlines() if ln.strip()]
    return " | ".join(kept[-lines:])


def parse_progress_seconds(line: str) -> float | None:
    """Read the output position from one ``-progress`` key=value line."""
    key, sep, value = line.strip().partition("=")
    if not sep:
        return None
    if key in ("out_time_us", "out_time_ms"):
        # Both keys are reported in microseconds.
        try:
            return int(value) / 1_000_000
        except ValueError:
            return None
    return None


def build_cut_command(
    input_path: Path,
    output_path: Path,
    start: float,
    duration: float,
    output_args: list[str],
    with_progress: bool = False,
) -> list[str]:
    cmd = [
        "ffmpeg", "-y",
        "-hide_banner",
        "-loglevel", "warning",
        "-ss", f"{start:.3f}",
        "-i", str(input_path),
        "-t", f"{duration:.3f}",
        *output_args,
    ]
    if with_progress:
        cmd += ["-progress", "pipe:1", "-nostats"]
    cmd.append(str(output_path))
    return cmd


def _run_with_progress(
    cmd: list[str], duration: float, on_progress: Callable[[float], None]
) -> tuple[int, str]:
    # stderr goes to a temp file so a chatty ffmpeg cannot block on a full pipe
    with tempfile.TemporaryFile(mode="w+", errors="replace") as err:
        with subprocess.Popen(
            cmd, stdout=subprocess.PIPE, stderr=err, text=True, errors="replace",
        ) as proc:
            try:
                for line in proc.stdout:
                    position = parse_progress_seconds(line)
                    if position is not None and duration > 0:
                        on_progress(min(position / duration, 1.0))
                returncode = proc.wait()
            except BaseException:
                proc.kill()
                raise
        err.seek(0)
        return returncode, err.read()


def cut_segment(
    input_path: Path,
    output_path: Path,
    start: float,
    duration: float,
    output_args: list[str],
    on_progress: Callable[[float], None] | None = None,
) -> Path:
    """Write ``duration`` seconds of *input_path* from ``start`` to *output_path*.

    Raises ToolInvocationError when ffmpeg exits non-zero, reports a fatal
    diagnostic, or leaves no output behind.
    """
    cmd = build_cut_command(
        input_path, output_path, start, duration, output_args,
        with_progress=on_progress is not None,
    )
    logger.debug("FFmpeg command: %s", " ".join(cmd))

    if on_progress is None:
        result = subprocess.run(cmd, capture_output=True, text=True, errors="replace")
        returncode, stderr = result.returncode, result.stderr or ""
    else:
        returncode, stderr = _run_with_progress(cmd, duration, on_progress)

    if returncode != 0:
        detail = stderr_tail(stderr) or "no output"
        raise ToolInvocationError(
            f"ffmpeg exited with code {returncode}: {detail}",
            returncode=returncode,
            stderr=stderr,
        )

    fatal = find_fatal_diagnostic(stderr)
    if fatal:
        raise ToolInvocationError(f"ffmpeg reported: {fatal}", returncode=returncode, stderr=stderr)

    if not output_path.exists() or output_path.stat().st_size == 0:
        raise ToolInvocationError(
            f"ffmpeg produced no output at {output_path}", returncode=returncode, stderr=stderr
        )
    return output_path
