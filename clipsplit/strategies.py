"""ffmpeg output arguments per format/quality, and the per-segment fallback chain."""

from clipsplit.models import (
    OutputFormat,
    Quality,
    SegmentOptions,
    Strategy,
    coerce_format,
    coerce_quality,
)

FASTSTART = ["-movflags", "+faststart"]

_COPY_EXTRA: dict[OutputFormat, list[str]] = {
    OutputFormat.MP4: [*FASTSTART, "-avoid_negative_ts", "make_non_negative"],
    OutputFormat.MKV: [],
    OutputFormat.TS: ["-mpegts_flags", "+resend_headers"],
}

_AUDIO_CODEC: dict[OutputFormat, str] = {
    OutputFormat.MP4: "aac",
    OutputFormat.TS: "aac",
    OutputFormat.MKV: "libopus",
    OutputFormat.WEBM: "libopus",
}

AUDIO_ONLY_BITRATE = "128k"


def _x264(crf: int, preset: str, audio_codec: str, audio_bitrate: str) -> list[str]:
    return [
        "-c:v", "libx264", "-crf", str(crf), "-preset", preset,
        "-c:a", audio_codec, "-b:a", audio_bitrate,
    ]


def _vp9(crf: int, bitrate: str, cpu_used: int, audio_bitrate: str) -> list[str]:
    # Constrained quality: CRF with a target bitrate keeps VP9 encode times sane.
    return [
        "-c:v", "libvpx-vp9", "-crf", str(crf), "-b:v", bitrate, "-cpu-used", str(cpu_used),
        "-c:a", "libopus", "-b:a", audio_bitrate,
    ]


ENCODE_SETTINGS: dict[Quality, dict[OutputFormat, list[str]]] = {
    Quality.HIGH: {
        OutputFormat.MP4: _x264(18, "medium", "aac", "192k") + FASTSTART,
        OutputFormat.MKV: _x264(18, "medium", "libopus", "192k"),
        OutputFormat.WEBM: _vp9(20, "2M", 1, "128k"),
        OutputFormat.TS: _x264(18, "medium", "aac", "192k") + FASTSTART,
    },
    Quality.MEDIUM: {
        OutputFormat.MP4: _x264(22, "fast", "aac", "128k") + FASTSTART,
        OutputFormat.MKV: _x264(22, "fast", "libopus", "128k"),
        OutputFormat.WEBM: _vp9(30, "1M", 2, "96k"),
        OutputFormat.TS: _x264(22, "fast", "aac", "128k") + FASTSTART,
    },
    Quality.LOW: {
        OutputFormat.MP4: _x264(28, "ultrafast", "aac", "96k") + FASTSTART,
        OutputFormat.MKV: _x264(28, "ultrafast", "libopus", "96k"),
        OutputFormat.WEBM: _vp9(35, "500k", 4, "64k"),
        OutputFormat.TS: _x264(28, "ultrafast", "aac", "96k") + FASTSTART,
    },
}


def supports_stream_copy(fmt: OutputFormat | str) -> bool:
    """WebM cannot hold the usual H.264/AAC sources, so it always re-encodes."""
    return coerce_format(fmt) is not OutputFormat.WEBM


def output_extension(fmt: OutputFormat | str) -> str:
    fmt = coerce_format(fmt)
    return ".ts" if fmt is OutputFormat.TS else f".{fmt.value}"


def select_output_args(
    fmt: OutputFormat | str,
    quality: Quality | str,
    use_stream_copy: bool,
    audio_only: bool = False,
) -> list[str]:
    """Return the ordered ffmpeg output options for one attempt.

    Raises UnsupportedEnumError for a format or quality outside the known set.
    """
    fmt = coerce_format(fmt)
    quality = coerce_quality(quality)

    if use_stream_copy and supports_stream_copy(fmt):
        streams = ["-vn", "-c:a", "copy"] if audio_only else ["-c", "copy"]
        return streams + list(_COPY_EXTRA[fmt])

    if audio_only:
        return ["-vn", "-c:a", _AUDIO_CODEC[fmt], "-b:a", AUDIO_ONLY_BITRATE]

    return list(ENCODE_SETTINGS[quality][fmt])


def plan_attempts(options: SegmentOptions) -> list[Strategy]:
    """Ordered strategies to try for every segment under *options*."""
    fmt = options.format.value
    encode = Strategy(name=f"encode-{fmt}-{options.quality.value}", stream_copy=False)
    if options.force_encode or not supports_stream_copy(options.format):
        return [encode]
    return [Strategy(name=f"copy-{fmt}", stream_copy=True), encode]


def strategy_args(strategy: Strategy, options: SegmentOptions) -> list[str]:
    return select_output_args(
        options.format, options.quality, strategy.stream_copy, options.audio_only
    )
