"""Fill in missing segment fields and derive filesystem-safe names."""

import logging
import re
from collections.abc import Mapping
from typing import Any

from clipsplit.models import NormalizedSegment, Segment

logger = logging.getLogger(__name__)

DEFAULT_START = "00:00:00"
# Stand-in end time for segments that omit one; ffmpeg stops at end of input.
OPEN_END = "23:59:59"

_UNSAFE_CHARS = re.compile(r"[^\w\s-]")
_WHITESPACE = re.compile(r"\s+")


def sanitize_filename(name: Any, default: str = "unnamed") -> str:
    """Reduce *name* to word characters, hyphens and underscores."""
    if name is None:
        return default
    cleaned = _UNSAFE_CHARS.sub("", str(name))
    cleaned = _WHITESPACE.sub("_", cleaned.strip())
    return cleaned or default


def _field(segment: Segment | NormalizedSegment | Mapping | None, key: str) -> Any:
    if segment is None:
        return None
    if isinstance(segment, Mapping):
        return segment.get(key)
    return getattr(segment, key, None)


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_segment(
    segment: Segment | NormalizedSegment | Mapping | None, index: int
) -> NormalizedSegment:
    """Return a fully populated copy of *segment*. Never raises.

    Timestamps are only defaulted here, not parsed.
    """
    placeholder = f"segment_{index + 1}"
    name = _as_text(_field(segment, "name")) or placeholder
    start = _as_text(_field(segment, "start")) or DEFAULT_START
    end = _as_text(_field(segment, "end"))
    if end is None:
        logger.warning(
            "Segment %d (%s) has no end time; using %s", index + 1, name, OPEN_END
        )
        end = OPEN_END

    return NormalizedSegment(
        index=index,
        name=name,
        file_stem=sanitize_filename(name, default=placeholder),
        start=start,
        end=end,
    )
