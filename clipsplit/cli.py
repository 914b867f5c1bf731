"""Command line entry point: batch runs, single-file cuts and segment checks."""

import argparse
import re
import sys
from pathlib import Path

from pydantic import ValidationError

from clipsplit import ffutil
from clipsplit.analyzers.segment_check import format_report, inspect_segment
from clipsplit.batch import run_batch
from clipsplit.config import configure_logging, load_settings
from clipsplit.engine import segment_all
from clipsplit.errors import ClipSplitError, SegmentationError
from clipsplit.manifest import load_segments, load_videos
from clipsplit.models import OutputFormat, Quality, Segment, SegmentOptions
from clipsplit.progress import ProgressTracker

_SEGMENT_ARG = re.compile(r"^(?:(?P<name>[^=]*)=)?(?P<start>[\d:.]+)-(?P<end>[\d:.]+)$")


def parse_segment_arg(text: str) -> Segment:
    """Parse ``NAME=START-END`` (NAME optional) into a Segment."""
    m = _SEGMENT_ARG.match(text.strip())
    if not m:
        raise argparse.ArgumentTypeError(
            f"invalid segment {text!r}; expected NAME=START-END, e.g. Intro=00:00:00-00:01:30"
        )
    return Segment(name=m.group("name") or None, start=m.group("start"), end=m.group("end"))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clipsplit",
        description="Download videos and split them into timestamped clips with ffmpeg.",
    )
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="Process every video listed in a JSON manifest")
    run.add_argument("--data", type=Path, help="Path to the videos JSON file")
    run.add_argument("--concurrency", "-c", type=int, help="Number of videos to process in parallel")
    run.add_argument("--output", "-o", type=Path, help="Output directory for processed videos")
    run.add_argument("--temp", "-t", type=Path, help="Directory for downloaded videos")
    run.add_argument("--progress-file", type=Path, help="Where to persist batch progress")
    run.add_argument("--force", "-f", action="store_true", help="Reprocess already completed videos")
    run.add_argument("--dev", "-d", action="store_true", help="Debug logging and full error traces")
    run.add_argument("--verbose", action="store_true", help="Log at DEBUG level")

    cut = sub.add_parser("cut", help="Split a local video file")
    cut.add_argument("video", type=Path, help="Input video file")
    cut.add_argument(
        "--segment", "-s", dest="segments", action="append", type=parse_segment_arg, default=[],
        metavar="NAME=START-END", help="Segment to extract (repeatable)",
    )
    cut.add_argument("--segments-file", type=Path, help="JSON list of {name, start, end} objects")
    cut.add_argument("--output", "-o", type=Path, help="Output directory (default: next to the input)")
    cut.add_argument("--format", choices=[f.value for f in OutputFormat], default="mp4")
    cut.add_argument("--quality", choices=[q.value for q in Quality], default="medium")
    cut.add_argument("--force-encode", action="store_true", help="Always re-encode, never stream copy")
    cut.add_argument("--audio-only", action="store_true", help="Drop the video stream")
    cut.add_argument("--verbose", action="store_true", help="Log at DEBUG level")

    check = sub.add_parser("inspect", help="Check a produced segment for cutting artifacts")
    check.add_argument("file", type=Path, help="Segment file to analyze")

    return parser


def _run(args: argparse.Namespace) -> int:
    try:
        settings = load_settings(
            concurrency=args.concurrency,
            output_dir=args.output,
            temp_dir=args.temp,
            data_file=args.data,
            progress_file=args.progress_file,
            dev_mode=True if args.dev else None,
            log_level="DEBUG" if args.verbose else None,
        )
    except ValidationError as e:
        print(f"Error: invalid configuration:\n{e}", file=sys.stderr)
        return 1

    configure_logging(settings.effective_log_level, settings.log_file)

    if not settings.data_file.exists():
        print(f"Error: data file not found: {settings.data_file}", file=sys.stderr)
        return 1

    ffutil.check_ffmpeg()
    settings.output_dir.mkdir(parents=True, exist_ok=True)
    settings.temp_dir.mkdir(parents=True, exist_ok=True)

    videos = load_videos(settings.data_file)
    tracker = ProgressTracker.load(settings.progress_file)
    report = run_batch(videos, settings, tracker, force=args.force)

    print()
    print(f"Completed: {len(report.completed)}  Failed: {len(report.failed)}  Skipped: {len(report.skipped)}")
    for video_id in report.failed:
        print(f"  failed: {video_id}")
    return 1 if report.failed else 0


def _cut(args: argparse.Namespace) -> int:
    configure_logging("DEBUG" if args.verbose else "INFO")

    segments = list(args.segments)
    if args.segments_file:
        segments.extend(load_segments(args.segments_file))
    if not segments:
        print("Error: provide at least one --segment or --segments-file.", file=sys.stderr)
        return 1

    ffutil.check_ffmpeg()
    options = SegmentOptions(
        format=args.format,
        quality=args.quality,
        force_encode=args.force_encode,
        audio_only=args.audio_only,
    )
    output_dir = args.output or args.video.with_name(args.video.stem + "_segments")

    def on_progress(index: int, frac: float) -> None:
        print(f"\r  [{frac:4.0%}] segment {index + 1}/{len(segments)}", end="", flush=True)

    def on_event(event: str, payload: dict) -> None:
        if event in ("segment_completed", "segment_skipped"):
            print(f"\r  done: {payload['path']}" + " " * 10)

    try:
        paths = segment_all(
            args.video, output_dir, segments, options,
            on_event=on_event, on_progress=on_progress,
        )
    except SegmentationError as e:
        print(f"\n{e}", file=sys.stderr)
        return 1

    print()
    print(f"Done! {len(paths)} segments in {output_dir}")
    return 0


def _inspect(args: argparse.Namespace) -> int:
    if not args.file.exists():
        print(f"Error: file not found: {args.file}", file=sys.stderr)
        return 1
    ffutil.check_ffmpeg()
    report = inspect_segment(args.file)
    print(format_report(report))
    return 1 if any(i.severity in ("critical", "high") for i in report.issues) else 0


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    handlers = {"run": _run, "cut": _cut, "inspect": _inspect}
    try:
        code = handlers[args.command](args)
    except (ClipSplitError, ffutil.FFmpegNotFoundError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
