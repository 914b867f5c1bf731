"""Shared test fixtures."""

import shutil
import subprocess
from pathlib import Path

import pytest

from clipsplit.errors import ToolInvocationError

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def sample_videos_path() -> Path:
    return FIXTURES_DIR / "sample_videos.json"


class FakeRunner:
    """Stands in for ffutil.cut_segment.

    ``fail`` decides per call whether the attempt fails; a failing attempt
    still leaves a partial file behind, the way an interrupted ffmpeg does.
    """

    def __init__(self, fail=None):
        self.fail = fail or (lambda call: False)
        self.calls: list[dict] = []

    def __call__(self, input_path, output_path, start, duration, output_args, on_progress=None):
        call = {
            "input": input_path,
            "output": output_path,
            "start": start,
            "duration": duration,
            "args": list(output_args),
            "copy": "copy" in output_args,
        }
        self.calls.append(call)
        output_path.write_bytes(b"partial" if self.fail(call) else b"segment")
        if self.fail(call):
            raise ToolInvocationError("ffmpeg exited with code 1: moov atom not found", returncode=1)
        if on_progress:
            on_progress(0.5)
            on_progress(1.0)
        return output_path

    @property
    def copy_calls(self) -> list[dict]:
        return [c for c in self.calls if c["copy"]]


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


def _generate_synthetic_video(output: Path, seconds: int = 12) -> None:
    """Tone over a color test pattern, with a keyframe only every 5 seconds.

    Sparse keyframes make stream-copy cuts land between keyframes, which is
    the case the copy/encode fallback exists for.
    """
    cmd = [
        "ffmpeg", "-y", "-hide_banner", "-loglevel", "error",
        "-f", "lavfi", "-i", f"testsrc=s=320x240:r=30:d={seconds}",
        "-f", "lavfi", "-i", f"sine=f=440:d={seconds}",
        "-c:v", "libx264", "-g", "150", "-keyint_min", "150", "-sc_threshold", "0",
        "-c:a", "aac",
        "-shortest",
        str(output),
    ]
    subprocess.run(cmd, check=True, capture_output=True)


@pytest.fixture(scope="session")
def synthetic_video(tmp_path_factory) -> Path:
    if shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None:
        pytest.skip("ffmpeg not installed")
    path = tmp_path_factory.mktemp("source") / "synthetic.mp4"
    _generate_synthetic_video(path)
    return path
