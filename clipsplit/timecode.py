"""Conversion between human timestamps and seconds."""

import math

from clipsplit.errors import ParseError


def timestamp_to_seconds(text: str) -> float:
    """Parse ``HH:MM:SS``, ``MM:SS`` or bare seconds into a number of seconds.

    Each part may carry a fractional component (``00:01:02.5``).
    """
    parts = str(text).strip().split(":")
    if len(parts) > 3:
        raise ParseError(f"Too many ':' separated parts in timestamp {text!r}")

    values: list[float] = []
    for part in parts:
        try:
            value = float(part)
        except ValueError:
            raise ParseError(f"Non-numeric component {part!r} in timestamp {text!r}") from None
        if not math.isfinite(value):
            raise ParseError(f"Non-finite component {part!r} in timestamp {text!r}")
        values.append(value)

    if len(values) == 3:
        h, m, s = values
        return h * 3600 + m * 60 + s
    if len(values) == 2:
        m, s = values
        return m * 60 + s
    return values[0]


def seconds_to_timestamp(seconds: float) -> str:
    """Format seconds as zero-padded ``HH:MM:SS``, dropping any fraction."""
    if seconds < 0:
        raise ValueError(f"Cannot format negative time {seconds}")
    total = int(math.floor(seconds))
    h = total // 3600
    m = (total % 3600) // 60
    s = total % 60
    return f"{h:02d}:{m:02d}:{s:02d}"


def calculate_duration(start: str, end: str) -> float:
    """Seconds between two timestamps. Negative when ``end`` precedes ``start``."""
    return timestamp_to_seconds(end) - timestamp_to_seconds(start)


def seconds_to_offset(seconds: float) -> str:
    """Like seconds_to_timestamp, but keeps milliseconds when there are any.

    Whole seconds still format as ``HH:MM:SS``; otherwise ``HH:MM:SS.mmm``.
    """
    if seconds < 0:
        raise ValueError(f"Cannot format negative time {seconds}")
    millis = int(round(seconds * 1000))
    whole, frac = divmod(millis, 1000)
    stamp = seconds_to_timestamp(whole)
    return f"{stamp}.{frac:03d}" if frac else stamp
