"""Segmentation engine: cuts one source video into its requested segments.

Segments are handled one at a time in input order. For each segment the
strategies from :func:`clipsplit.strategies.plan_attempts` are tried in turn
(stream copy first where the container allows it, then a re-encode) until
ffmpeg reports a clean result. A segment whose destination file already
exists is accepted untouched, which is what makes interrupted runs resumable.
"""

import logging
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

from clipsplit import ffutil
from clipsplit.errors import (
    InvalidSegmentError,
    ParseError,
    SegmentationError,
    ToolInvocationError,
)
from clipsplit.models import (
    AttemptResult,
    NormalizedSegment,
    Segment,
    SegmentationRun,
    SegmentFailed,
    SegmentOptions,
    Strategy,
)
from clipsplit.normalize import normalize_segment
from clipsplit.strategies import output_extension, plan_attempts, strategy_args
from clipsplit.timecode import timestamp_to_seconds

logger = logging.getLogger(__name__)

EventCallback = Callable[[str, dict[str, Any]], None]
ProgressCallback = Callable[[int, float], None]
Runner = Callable[..., Path]

SegmentInput = Segment | NormalizedSegment | Mapping[str, Any] | None


def segment_bounds(segment: NormalizedSegment) -> tuple[float, float]:
    """Return ``(start_seconds, duration)`` or raise InvalidSegmentError."""
    try:
        start = timestamp_to_seconds(segment.start)
        end = timestamp_to_seconds(segment.end)
    except ParseError as e:
        raise InvalidSegmentError(f"Unparseable timestamp: {e}") from e

    if start < 0:
        raise InvalidSegmentError(f"Start time {segment.start} is negative")
    duration = end - start
    if duration <= 0:
        raise InvalidSegmentError(
            f"End time {segment.end} is not after start time {segment.start} "
            f"(duration {duration:g}s)"
        )
    return start, duration


def destination_for(output_dir: Path, segment: NormalizedSegment, options: SegmentOptions) -> Path:
    return output_dir / f"{segment.file_stem}{output_extension(options.format)}"


def _discard(path: Path) -> str | None:
    """Remove a partial output. Returns an error description if that fails."""
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.error("Could not remove partial output %s: %s", path, e)
        return f"partial output left at {path}: {e}"
    return None


class _Segmenter:
    """Holds the per-call collaborators while walking the segment list."""

    def __init__(
        self,
        run: SegmentationRun,
        runner: Runner,
        on_event: EventCallback | None,
        on_progress: ProgressCallback | None,
    ):
        self.run = run
        self.runner = runner
        self.on_event = on_event
        self.on_progress = on_progress
        self.strategies: list[Strategy] = plan_attempts(run.options)
        self._claimed: set[Path] = set()

    def emit(self, event: str, **payload: Any) -> None:
        if self.on_event:
            self.on_event(event, payload)

    def _progress_callback(self, index: int, name: str) -> Callable[[float], None]:
        last_logged = [-1]

        def cb(frac: float) -> None:
            pct = int(frac * 100)
            if pct // 10 > last_logged[0]:
                last_logged[0] = pct // 10
                logger.debug("Segment %s progress: %d%%", name, pct)
            if self.on_progress:
                self.on_progress(index, frac)

        return cb

    def _fail(self, segment: NormalizedSegment, tried: list[str], error: str) -> None:
        failure = SegmentFailed(
            index=segment.index, name=segment.name, strategies=tried, last_error=error
        )
        self.run.failures.append(failure)
        logger.error("Segment failed: %s", failure.describe())
        self.emit(
            "segment_failed",
            index=segment.index,
            name=segment.name,
            strategies=tried,
            error=error,
        )
        return None

    def process(self, raw: SegmentInput, index: int) -> Path | None:
        run = self.run
        total = len(run.segments)
        segment = normalize_segment(raw, index)
        self.emit("segment_started", index=index, name=segment.name)

        try:
            start, duration = segment_bounds(segment)
        except InvalidSegmentError as e:
            return self._fail(segment, [], str(e))

        dest = destination_for(run.output_dir, segment, run.options)
        if dest in self._claimed:
            logger.warning(
                "Segment %d (%s) maps to %s, already used by an earlier segment",
                index + 1, segment.name, dest.name,
            )
        self._claimed.add(dest)

        if dest.exists():
            logger.info("Segment already exists: %s", dest)
            self.emit("segment_skipped", index=index, name=segment.name, path=dest)
            return dest

        logger.info(
            "Processing segment %d/%d: %s (format: %s)",
            index + 1, total, segment.name, run.options.format.value,
        )

        tried: list[str] = []
        last_error = "no strategy attempted"
        for strategy in self.strategies:
            tried.append(strategy.name)
            args = strategy_args(strategy, run.options)
            self.emit("attempt_started", index=index, strategy=strategy.name, args=args)
            try:
                self.runner(
                    run.input_path, dest, start, duration, args,
                    on_progress=self._progress_callback(index, segment.name),
                )
            except ToolInvocationError as e:
                last_error = str(e)
                cleanup = _discard(dest)
                if cleanup:
                    last_error = f"{last_error}; {cleanup}"
                self._record_failure(index, strategy, last_error)
                continue
            except OSError as e:
                # Permission or disk-space problems will not improve on retry.
                last_error = f"filesystem error: {e}"
                cleanup = _discard(dest)
                if cleanup:
                    last_error = f"{last_error}; {cleanup}"
                self._record_failure(index, strategy, last_error)
                break
            except BaseException:
                # A half-written file must never pass for a finished segment.
                _discard(dest)
                raise

            run.attempts.append(
                AttemptResult(index=index, strategy=strategy.name, success=True, output_path=dest)
            )
            logger.info("Segment completed (%s): %s", strategy.name, segment.name)
            self.emit(
                "segment_completed", index=index, name=segment.name,
                strategy=strategy.name, path=dest,
            )
            return dest

        return self._fail(segment, tried, last_error)

    def _record_failure(self, index: int, strategy: Strategy, error: str) -> None:
        self.run.attempts.append(
            AttemptResult(index=index, strategy=strategy.name, success=False, error=error)
        )
        logger.warning("Strategy %s failed for segment %d: %s", strategy.name, index + 1, error)
        self.emit("attempt_failed", index=index, strategy=strategy.name, error=error)


def run_segmentation(
    input_path: Path,
    output_dir: Path,
    segments: Iterable[SegmentInput],
    options: SegmentOptions | None = None,
    *,
    runner: Runner | None = None,
    on_event: EventCallback | None = None,
    on_progress: ProgressCallback | None = None,
) -> SegmentationRun:
    """Cut every segment and return the run record without raising for
    per-segment failures.

    Args:
        input_path: Local source video.
        output_dir: Directory that receives one file per segment.
        segments: Segment records (or mappings) in the order to produce them.
        options: Container/quality preferences; defaults to mp4/medium.
        runner: Callable with the signature of :func:`ffutil.cut_segment`.
        on_event: Optional callback(event_name, payload) for structured events.
        on_progress: Optional callback(segment_index, fraction_complete).
    """
    options = options or SegmentOptions()
    run = SegmentationRun(
        input_path=Path(input_path),
        output_dir=Path(output_dir),
        segments=list(segments),
        options=options,
    )
    segmenter = _Segmenter(run, runner or ffutil.cut_segment, on_event, on_progress)

    logger.info("Starting video segmentation for: %s", run.input_path)
    run.output_dir.mkdir(parents=True, exist_ok=True)

    for index, raw in enumerate(run.segments):
        run.outputs.append(segmenter.process(raw, index))

    produced = sum(1 for p in run.outputs if p is not None)
    logger.info("Segmentation finished: %d/%d segments available", produced, len(run.segments))
    segmenter.emit(
        "segmentation_finished",
        total=len(run.segments),
        produced=produced,
        failed=len(run.failures),
    )
    return run


def segment_all(
    input_path: Path,
    output_dir: Path,
    segments: Iterable[SegmentInput],
    options: SegmentOptions | None = None,
    *,
    runner: Runner | None = None,
    on_event: EventCallback | None = None,
    on_progress: ProgressCallback | None = None,
) -> list[Path]:
    """Cut every segment and return the output paths in input order.

    Every segment is attempted even if an earlier one fails; afterwards a
    SegmentationError listing each failure is raised if any segment could not
    be produced. Files that were produced stay on disk.
    """
    run = run_segmentation(
        input_path, output_dir, segments, options,
        runner=runner, on_event=on_event, on_progress=on_progress,
    )
    if run.failures:
        raise SegmentationError(run)
    return [p for p in run.outputs if p is not None]
