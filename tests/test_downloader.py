"""Tests for the yt-dlp wrappers (YoutubeDL is always mocked)."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import yt_dlp

from clipsplit.downloader import _ProgressLogger, detect_chapters, download
from clipsplit.errors import DownloadError
from clipsplit.models import Chapter


def _mock_ydl(mock_cls, info=None, side_effect=None):
    ydl = MagicMock()
    mock_cls.return_value.__enter__.return_value = ydl
    if side_effect is not None:
        ydl.extract_info.side_effect = side_effect
    else:
        ydl.extract_info.return_value = info
    return ydl


class TestDownload:
    @patch("clipsplit.downloader.yt_dlp.YoutubeDL")
    def test_returns_downloaded_file(self, mock_cls, tmp_path: Path):
        target = tmp_path / "My_Talk-abc123.mp4"
        target.write_bytes(b"video")
        _mock_ydl(mock_cls, info={"id": "abc123", "requested_downloads": [{"filepath": str(target)}]})

        assert download("https://example.com/v", tmp_path) == target
        opts = mock_cls.call_args[0][0]
        assert opts["outtmpl"].endswith("%(title)s-%(id)s.%(ext)s")
        assert opts["merge_output_format"] == "mp4"
        assert opts["overwrites"] is False

    @patch("clipsplit.downloader.yt_dlp.YoutubeDL")
    def test_falls_back_to_prepared_filename(self, mock_cls, tmp_path: Path):
        target = tmp_path / "clip-1.mp4"
        target.write_bytes(b"video")
        ydl = _mock_ydl(mock_cls, info={"id": "1"})
        ydl.prepare_filename.return_value = str(tmp_path / "clip-1.webm")

        assert download("https://example.com/v", tmp_path) == target

    @patch("clipsplit.downloader.yt_dlp.YoutubeDL")
    def test_wraps_ytdlp_error(self, mock_cls, tmp_path: Path):
        _mock_ydl(mock_cls, side_effect=yt_dlp.utils.DownloadError("HTTP Error 404"))
        with pytest.raises(DownloadError, match="HTTP Error 404"):
            download("https://example.com/missing", tmp_path)

    @patch("clipsplit.downloader.yt_dlp.YoutubeDL")
    def test_missing_file(self, mock_cls, tmp_path: Path):
        _mock_ydl(mock_cls, info={"requested_downloads": [{"filepath": str(tmp_path / "gone.mp4")}]})
        with pytest.raises(DownloadError, match="did not produce"):
            download("https://example.com/v", tmp_path)

    @patch("clipsplit.downloader.yt_dlp.YoutubeDL")
    def test_creates_dest_dir(self, mock_cls, tmp_path: Path):
        dest = tmp_path / "temp"
        target = dest / "v.mp4"

        def extract(url, download):
            target.write_bytes(b"video")
            return {"requested_downloads": [{"filepath": str(target)}]}

        _mock_ydl(mock_cls, side_effect=extract)
        assert download("https://example.com/v", dest) == target


class TestDetectChapters:
    @patch("clipsplit.downloader.yt_dlp.YoutubeDL")
    def test_chapters(self, mock_cls):
        _mock_ydl(mock_cls, info={"chapters": [
            {"title": "Intro", "start_time": 0.0, "end_time": 60.0},
            {"title": "Body", "start_time": 60.0},
        ]})
        assert detect_chapters("https://example.com/v") == [
            Chapter("Intro", 0.0, 60.0),
            Chapter("Body", 60.0, None),
        ]
        opts = mock_cls.call_args[0][0]
        assert opts["skip_download"] is True

    @patch("clipsplit.downloader.yt_dlp.YoutubeDL")
    def test_no_chapters(self, mock_cls):
        _mock_ydl(mock_cls, info={"chapters": None})
        assert detect_chapters("https://example.com/v") == []


class TestProgressLogger:
    def test_logs_in_steps(self, caplog):
        hook = _ProgressLogger(step=5)
        with caplog.at_level("INFO", logger="clipsplit.downloader"):
            for done in (1, 3, 6, 7, 12, 100):
                hook({"status": "downloading", "downloaded_bytes": done, "total_bytes": 100})
        messages = [r.getMessage() for r in caplog.records]
        assert messages == ["Download progress: 6%", "Download progress: 12%", "Download progress: 100%"]

    def test_unknown_total_is_ignored(self, caplog):
        hook = _ProgressLogger()
        with caplog.at_level("INFO", logger="clipsplit.downloader"):
            hook({"status": "downloading", "downloaded_bytes": 50})
        assert caplog.records == []
