"""Turn detected chapters into segment requests."""

import logging

from clipsplit.models import Chapter, Segment
from clipsplit.normalize import OPEN_END
from clipsplit.timecode import seconds_to_offset

logger = logging.getLogger(__name__)

FULL_VIDEO_NAME = "Full Video"


def resolve_chapters(chapters: list[Chapter], duration: float | None) -> list[Segment]:
    """Build one Segment per chapter, filling in missing end times.

    A chapter without an end runs to the next chapter's start, or to
    *duration* for the last one. With no chapters at all the whole video
    becomes a single segment. An unknown *duration* falls back to the
    open-ended sentinel. Chapters that end at or before their start are
    dropped.
    """
    end_of_video = seconds_to_offset(duration) if duration else OPEN_END

    segments: list[Segment] = []
    for i, chapter in enumerate(chapters):
        start_time = max(chapter.start_time, 0.0)
        if chapter.end_time is not None:
            end_time = chapter.end_time
        elif i + 1 < len(chapters):
            end_time = chapters[i + 1].start_time
        else:
            end_time = duration or None

        name = chapter.name or f"Chapter {i + 1}"
        if end_time is None:
            end = end_of_video
        elif end_time <= start_time:
            logger.warning("Skipping empty chapter %d (%s) at %.3fs", i + 1, name, start_time)
            continue
        else:
            end = seconds_to_offset(end_time)

        segments.append(Segment(name=name, start=seconds_to_offset(start_time), end=end))

    if not segments:
        return [Segment(name=FULL_VIDEO_NAME, start="00:00:00", end=end_of_video)]
    return segments
