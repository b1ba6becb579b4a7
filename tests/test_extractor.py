"""Tests for the yt-dlp argument contract."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from video_converter.config.settings import DEFAULT_TOOL_CONFIG
from video_converter.core.extractor import Extractor
from video_converter.core.invoker import ToolResult
from video_converter.errors import ExtractorOutputInvalid

URL = "https://www.youtube.com/watch?v=jNQXAC9IVRw"


def _result(stdout: str = "") -> ToolResult:
    return ToolResult(stdout=stdout, stderr="", returncode=0, elapsed=0.1)


class TestDumpInfo:
    def test_full_listing_uses_no_playlist(self):
        extractor = Extractor(binary="yt-dlp")
        payload = {"title": "Me at the zoo", "formats": []}

        with patch("video_converter.core.extractor.run_tool", return_value=_result(json.dumps(payload))) as mock_run:
            info = extractor.dump_info(URL)

        assert info == payload
        binary, args = mock_run.call_args[0]
        assert binary == "yt-dlp"
        assert args == ["-j", "--no-playlist", "--", URL]

    def test_flat_listing_uses_flat_playlist(self):
        extractor = Extractor()

        with patch("video_converter.core.extractor.run_tool", return_value=_result('{"title": "x"}')) as mock_run:
            extractor.dump_info(URL, flat=True)

        assert mock_run.call_args[0][1][:2] == ["-j", "--flat-playlist"]

    def test_first_document_wins(self):
        extractor = Extractor()
        stdout = '\n{"title": "first"}\n{"title": "second"}\n'

        with patch("video_converter.core.extractor.run_tool", return_value=_result(stdout)):
            assert extractor.dump_info(URL)["title"] == "first"

    def test_invalid_json(self):
        extractor = Extractor()

        with patch("video_converter.core.extractor.run_tool", return_value=_result("not json")):
            with pytest.raises(ExtractorOutputInvalid):
                extractor.dump_info(URL)

    def test_empty_output(self):
        extractor = Extractor()

        with patch("video_converter.core.extractor.run_tool", return_value=_result("   \n")):
            with pytest.raises(ExtractorOutputInvalid):
                extractor.dump_info(URL)


class TestDirectUrl:
    def test_with_selector(self):
        extractor = Extractor(candidate_timeout=15)

        with patch(
            "video_converter.core.extractor.run_tool", return_value=_result("https://cdn/a.mp4\n")
        ) as mock_run:
            assert extractor.direct_url(URL, "18") == "https://cdn/a.mp4"

        assert mock_run.call_args[0][1] == ["-g", "-f", "18", "--", URL]
        assert mock_run.call_args[1]["timeout"] == 15

    def test_without_selector(self):
        extractor = Extractor()

        with patch("video_converter.core.extractor.run_tool", return_value=_result("https://cdn/a.mp4")) as mock_run:
            extractor.direct_url(URL)

        assert mock_run.call_args[0][1] == ["-g", "--", URL]

    def test_multi_line_output_is_kept(self):
        extractor = Extractor()
        stdout = "https://cdn/video.m4s\nhttps://cdn/audio.m4s\n"

        with patch("video_converter.core.extractor.run_tool", return_value=_result(stdout)):
            assert extractor.direct_url(URL, "bv*+ba").splitlines() == [
                "https://cdn/video.m4s",
                "https://cdn/audio.m4s",
            ]


class TestDownload:
    def test_merge_arguments(self, tmp_path):
        extractor = Extractor(max_output_bytes=1234)
        template = tmp_path / "job-1.%(ext)s"
        sink = []

        with patch("video_converter.core.extractor.run_tool", return_value=_result()) as mock_run:
            extractor.download(URL, "best", "mkv", template, progress=sink.append)

        args = mock_run.call_args[0][1]
        assert args == ["-f", "best", "--merge-output-format", "mkv", "-o", str(template), "--", URL]
        assert mock_run.call_args[1]["max_output_bytes"] == 1234
        assert mock_run.call_args[1]["progress"] == sink.append

    def test_encoder_location_passed(self, tmp_path):
        extractor = Extractor(encoder="/opt/ffmpeg/bin/ffmpeg")

        with patch("video_converter.core.extractor.run_tool", return_value=_result()) as mock_run:
            extractor.download(URL, "best", "mp4", tmp_path / "x.%(ext)s")

        args = mock_run.call_args[0][1]
        assert args[args.index("--ffmpeg-location") + 1] == "/opt/ffmpeg/bin/ffmpeg"
        assert args[-2:] == ["--", URL]


def test_from_config_defaults():
    extractor = Extractor.from_config(dict(DEFAULT_TOOL_CONFIG))

    assert extractor.binary == "yt-dlp"
    assert extractor.encoder is None
    assert extractor.max_output_bytes == 50 * 1024 * 1024
    assert extractor.candidate_timeout == 60
