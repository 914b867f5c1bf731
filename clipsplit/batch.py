"""Batch orchestrator: download, split and record every video in a manifest."""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from clipsplit import ffutil
from clipsplit.analyzers.chapters import resolve_chapters
from clipsplit.config import Settings
from clipsplit.downloader import detect_chapters, download
from clipsplit.engine import segment_all
from clipsplit.manifest import VideoConfig
from clipsplit.models import Chapter, NormalizedSegment, Segment
from clipsplit.normalize import normalize_segment
from clipsplit.progress import ProgressTracker

logger = logging.getLogger(__name__)

SUMMARY_FILE = "summary.json"

COMPLETED = "completed"
FAILED = "failed"
SKIPPED = "skipped"


@dataclass
class Collaborators:
    """External services used per video; replaced with fakes in tests."""

    downloader: Callable[[str, Path], Path] = download
    chapter_detector: Callable[[str], list[Chapter]] = detect_chapters
    segmenter: Callable[..., list[Path]] = segment_all
    prober: Callable[[Path], object] = ffutil.probe


@dataclass
class BatchReport:
    completed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    def add(self, video_id: str, outcome: str) -> None:
        {COMPLETED: self.completed, FAILED: self.failed, SKIPPED: self.skipped}[outcome].append(video_id)


def _video_duration(path: Path, prober) -> float | None:
    try:
        return prober(path).duration
    except Exception as e:
        logger.warning("Could not read duration of %s: %s", path, e)
        return None


def resolve_segments(video: VideoConfig, video_path: Path, services: Collaborators) -> list[Segment]:
    if not video.auto_segments:
        return list(video.segments)

    logger.info("Using auto-segmentation based on video chapters")
    chapters = services.chapter_detector(video.url)
    if not chapters:
        logger.info("No chapters detected, using entire video as a single segment")
    return resolve_chapters(chapters, _video_duration(video_path, services.prober))


def write_summary(
    video: VideoConfig, segments: list[NormalizedSegment], outputs: list[Path], video_dir: Path
) -> Path:
    entries = []
    for index, seg in enumerate(segments):
        entries.append({
            "name": seg.name,
            "start": seg.start,
            "end": seg.end,
            "file": outputs[index].name if index < len(outputs) else "",
        })
    summary = {
        "id": video.id,
        "title": video.display_title,
        "url": video.url,
        "segments": entries,
    }
    path = video_dir / SUMMARY_FILE
    path.write_text(json.dumps(summary, indent=2), encoding="utf-8")
    logger.debug("Created summary file for video %s", video.id)
    return path


def process_video(
    video: VideoConfig,
    settings: Settings,
    tracker: ProgressTracker,
    *,
    force: bool = False,
    services: Collaborators | None = None,
) -> str:
    """Download, split and summarize one video, then record the outcome."""
    services = services or Collaborators()

    if not force and tracker.is_completed(video.id):
        logger.info("Skipping already processed video: %s", video.id)
        return SKIPPED

    try:
        logger.info("Processing video: %s (%s)", video.id, video.url)
        video_dir = settings.output_dir / video.id
        video_dir.mkdir(parents=True, exist_ok=True)

        video_path = services.downloader(video.url, settings.temp_dir)
        segments = [
            normalize_segment(segment, index)
            for index, segment in enumerate(resolve_segments(video, video_path, services))
        ]
        logger.info("Processing %d segments", len(segments))

        outputs = services.segmenter(video_path, video_dir, segments, video.options)
        write_summary(video, segments, outputs, video_dir)
    except Exception as e:
        if settings.dev_mode:
            logger.exception("Failed to process video %s", video.id)
        else:
            logger.error("Failed to process video %s: %s", video.id, e)
        tracker.mark_failed(video.id, str(e))
        return FAILED

    tracker.mark_completed(video.id)
    logger.info("Video processing completed: %s", video.id)
    return COMPLETED


def run_batch(
    videos: list[VideoConfig],
    settings: Settings,
    tracker: ProgressTracker,
    *,
    force: bool = False,
    services: Collaborators | None = None,
) -> BatchReport:
    """Process *videos* in groups of ``settings.concurrency``.

    Videos within a group run concurrently; the next group starts only when
    the whole group is done. A failing video does not affect its siblings.
    """
    report = BatchReport()
    size = settings.concurrency
    groups = [videos[i:i + size] for i in range(0, len(videos), size)]

    for number, group in enumerate(groups, 1):
        logger.info("Processing batch %d/%d", number, len(groups))
        with ThreadPoolExecutor(max_workers=len(group)) as pool:
            outcomes = list(pool.map(
                lambda v: process_video(v, settings, tracker, force=force, services=services),
                group,
            ))
        for video, outcome in zip(group, outcomes):
            report.add(video.id, outcome)

    logger.info(
        "Batch finished: %d completed, %d failed, %d skipped",
        len(report.completed), len(report.failed), len(report.skipped),
    )
    return report
