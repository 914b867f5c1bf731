"""Remote video download and chapter lookup via yt-dlp."""

import logging
from pathlib import Path

import yt_dlp

from clipsplit.errors import DownloadError
from clipsplit.models import Chapter

logger = logging.getLogger(__name__)

# Prefer a single mp4 file so stream copy has H.264/AAC to work with.
FORMAT_SPEC = "bestvideo[ext=mp4]+bestaudio[ext=m4a]/best[ext=mp4]/best"

BASE_OPTS = {
    "quiet": True,
    "no_warnings": True,
    "noprogress": True,
    "socket_timeout": 30,
}


class _ProgressLogger:
    """yt-dlp progress hook that logs every 5%."""

    def __init__(self, step: int = 5):
        self.step = step
        self.last = 0

    def __call__(self, d: dict) -> None:
        if d.get("status") == "finished":
            logger.info("Download completed: %s", d.get("filename"))
            return
        if d.get("status") != "downloading":
            return
        total = d.get("total_bytes") or d.get("total_bytes_estimate")
        if not total:
            return
        pct = int(d.get("downloaded_bytes", 0) * 100 / total)
        if pct >= self.last + self.step:
            self.last = pct
            logger.info("Download progress: %d%%", pct)


def _downloaded_path(ydl: yt_dlp.YoutubeDL, info: dict) -> Path:
    requested = info.get("requested_downloads") or []
    if requested and requested[0].get("filepath"):
        return Path(requested[0]["filepath"])
    return Path(ydl.prepare_filename(info)).with_suffix(".mp4")


def download(url: str, dest_dir: Path) -> Path:
    """Download *url* into *dest_dir* and return the local file path.

    A file that is already present is reused rather than fetched again.
    """
    dest_dir = Path(dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Starting download for: %s", url)

    opts = {
        **BASE_OPTS,
        "format": FORMAT_SPEC,
        "merge_output_format": "mp4",
        "outtmpl": str(dest_dir / "%(title)s-%(id)s.%(ext)s"),
        "restrictfilenames": True,
        "overwrites": False,
        "progress_hooks": [_ProgressLogger()],
    }
    try:
        with yt_dlp.YoutubeDL(opts) as ydl:
            info = ydl.extract_info(url, download=True)
            if info is None:
                raise DownloadError(f"yt-dlp returned no metadata for {url}")
            path = _downloaded_path(ydl, info)
    except yt_dlp.utils.DownloadError as e:
        raise DownloadError(f"yt-dlp failed for {url}: {e}") from e

    if not path.exists():
        raise DownloadError(f"Download of {url} did not produce {path}")
    logger.debug("Downloaded video to: %s", path)
    return path


def detect_chapters(url: str) -> list[Chapter]:
    """Return the chapters listed in the video's metadata (possibly none)."""
    logger.info("Detecting chapters for video: %s", url)
    opts = {**BASE_OPTS, "skip_download": True}
    try:
        with yt_dlp.YoutubeDL(opts) as ydl:
            info = ydl.extract_info(url, download=False)
    except yt_dlp.utils.DownloadError as e:
        raise DownloadError(f"yt-dlp failed for {url}: {e}") from e

    raw = (info or {}).get("chapters") or []
    chapters = [
        Chapter(
            name=c.get("title"),
            start_time=float(c.get("start_time") or 0.0),
            end_time=float(c["end_time"]) if c.get("end_time") is not None else None,
        )
        for c in raw
    ]
    if chapters:
        logger.info("Detected %d chapters in the video", len(chapters))
    else:
        logger.info("No chapters detected in the video")
    return chapters
