"""Persistent record of which videos a batch run has finished or failed."""

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class FailedVideo:
    id: str
    error: str


@dataclass
class ProgressTracker:
    """Completed/failed video ids backed by a JSON file.

    Every mark_* call rewrites the file before returning.
    """

    path: Path
    completed: list[str] = field(default_factory=list)
    failed: list[FailedVideo] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @classmethod
    def load(cls, path: str | Path) -> "ProgressTracker":
        """Read *path*, creating an empty progress file if it does not exist."""
        path = Path(path)
        if not path.exists():
            tracker = cls(path=path)
            tracker.save()
            logger.info("Created new progress tracker at %s", path)
            return tracker

        data = json.loads(path.read_text(encoding="utf-8"))
        tracker = cls(
            path=path,
            completed=[str(v) for v in data.get("completed", [])],
            failed=[FailedVideo(id=str(f["id"]), error=str(f.get("error", ""))) for f in data.get("failed", [])],
        )
        logger.info(
            "Loaded existing progress: %d completed, %d failed",
            len(tracker.completed), len(tracker.failed),
        )
        return tracker

    def to_dict(self) -> dict:
        return {
            "completed": list(self.completed),
            "failed": [{"id": f.id, "error": f.error} for f in self.failed],
        }

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".progress-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self.to_dict(), f, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        logger.debug("Progress saved to %s", self.path)

    def is_completed(self, video_id: str) -> bool:
        return video_id in self.completed

    def mark_completed(self, video_id: str) -> None:
        with self._lock:
            if video_id in self.completed and not any(f.id == video_id for f in self.failed):
                return
            if video_id not in self.completed:
                self.completed.append(video_id)
            self.failed = [f for f in self.failed if f.id != video_id]
            self.save()

    def mark_failed(self, video_id: str, error: str) -> None:
        with self._lock:
            self.completed = [v for v in self.completed if v != video_id]
            self.failed = [f for f in self.failed if f.id != video_id]
            self.failed.append(FailedVideo(id=video_id, error=error))
            self.save()
