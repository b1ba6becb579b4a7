"""Pytest configuration and an in-memory stand-in for yt-dlp."""

from __future__ import annotations

import asyncio
import copy
import threading
import time
from pathlib import Path

import pytest

from video_converter.core import ConverterService
from video_converter.errors import ToolExecutionFailed

TEST_VIDEO_URL = "https://www.youtube.com/watch?v=jNQXAC9IVRw"
TEST_BILIBILI_URL = "https://www.bilibili.com/video/av7/"

SAMPLE_INFO = {
    "id": "jNQXAC9IVRw",
    "title": "Me at the zoo",
    "uploader": "jawed",
    "duration": 19,
    "view_count": 1234567,
    "upload_date": "20050424",
    "thumbnail": "https://i.ytimg.com/vi/jNQXAC9IVRw/hqdefault.jpg",
    "formats": [
        {"format_id": "139", "ext": "m4a", "vcodec": "none", "format_note": "low", "filesize": 100_000},
        {"format_id": "18", "ext": "mp4", "height": 360, "vcodec": "avc1.42001E", "filesize": 700_000},
        {"format_id": "134", "ext": "mp4", "height": 360, "vcodec": "avc1.42001E", "filesize": 300_000},
        {"format_id": "243", "ext": "webm", "height": 360, "vcodec": "vp9", "filesize": 500_000},
        {"format_id": "160", "ext": "mp4", "height": 144, "vcodec": "avc1.4d400c", "filesize": 90_000},
    ],
}


class FakeExtractor:
    """Records calls and answers like yt-dlp would, without spawning anything."""

    binary = "yt-dlp"

    def __init__(
        self,
        info: dict | None = None,
        infos: dict | None = None,
        direct_urls: dict | None = None,
        fail_urls=(),
        fail_formats=(),
        download_delay: float = 0.0,
        produce_output: bool = True,
        gate: threading.Event | None = None,
    ):
        self.info = info if info is not None else SAMPLE_INFO
        self.infos = infos or {}
        self.direct_urls = direct_urls or {}
        self.fail_urls = set(fail_urls)
        self.fail_formats = set(fail_formats)
        self.download_delay = download_delay
        self.produce_output = produce_output
        self.gate = gate
        self.calls: list[tuple] = []
        self.intervals: list[tuple[float, float]] = []
        self._lock = threading.Lock()

    def _record(self, *call) -> None:
        with self._lock:
            self.calls.append(call)

    def calls_of(self, kind: str) -> list[tuple]:
        with self._lock:
            return [call for call in self.calls if call[0] == kind]

    def dump_info(self, url: str, flat: bool = False) -> dict:
        self._record("info", url, flat)
        if url in self.fail_urls:
            raise ToolExecutionFailed("yt-dlp", 1, stderr="ERROR: Unsupported URL")
        return copy.deepcopy(self.infos.get(url, self.info))

    def direct_url(self, url: str, format_selector: str | None = None) -> str:
        self._record("direct", url, format_selector)
        if format_selector in self.fail_formats:
            raise ToolExecutionFailed("yt-dlp", 1, stderr="ERROR: Requested format is not available")
        return self.direct_urls.get(format_selector, f"https://cdn.example.com/{format_selector}.mp4")

    def download(self, url, format_selector, target, output_template, progress=None) -> None:
        self._record("download", url, format_selector, target)
        started = time.monotonic()
        if self.gate is not None:
            self.gate.wait(timeout=10)
        if progress is not None:
            progress("[download]  50.0% of 1.00MiB\n")
        time.sleep(self.download_delay)
        if url in self.fail_urls:
            raise ToolExecutionFailed("yt-dlp", 1, stderr="ERROR: Unable to download video")
        if self.produce_output:
            Path(str(output_template).replace("%(ext)s", target)).write_bytes(b"fake media payload")
        with self._lock:
            self.intervals.append((started, time.monotonic()))


@pytest.fixture(scope="session")
def event_loop_policy():
    """Use default event loop policy."""
    return asyncio.DefaultEventLoopPolicy()


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path, monkeypatch):
    """Keep config and artifacts inside the test's temp directory."""
    config_dir = tmp_path / "config"
    work_dir = tmp_path / "artifacts"
    monkeypatch.setenv("VIDEO_CONVERTER_CONFIG_DIR", str(config_dir))
    monkeypatch.setenv("VIDEO_CONVERTER_WORK_DIR", str(work_dir))
    return {"config_dir": config_dir, "work_dir": work_dir}


@pytest.fixture
def work_dir(isolated_dirs) -> Path:
    path = isolated_dirs["work_dir"]
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def fake_extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def make_service(work_dir):
    """Build a ConverterService around a fake extractor with the sweep disabled."""
    services: list[ConverterService] = []

    def _make(extractor: FakeExtractor | None = None, **kwargs) -> ConverterService:
        kwargs.setdefault("serve_cleanup_delay", 0.1)
        kwargs.setdefault("cleanup_config", {"enabled": False, "retention_days": 1, "schedule": "0 */6 * * *"})
        service = ConverterService(extractor or FakeExtractor(), work_dir, **kwargs)
        services.append(service)
        return service

    yield _make

    for service in services:
        service.jobs.close(timeout=5)
