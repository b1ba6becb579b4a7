"""yt-dlp command contract built on top of the subprocess invoker."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from ..errors import ExtractorOutputInvalid
from .invoker import DEFAULT_MAX_OUTPUT_BYTES, ProgressSink, run_tool

logger = logging.getLogger(__name__)


class Extractor:
    """
    Thin wrapper that knows which yt-dlp arguments each operation needs.

    Every method spawns exactly one yt-dlp process. The URL is always
    passed after ``--`` so it can never be read as an option.
    """

    def __init__(
        self,
        binary: str = "yt-dlp",
        encoder: str | None = None,
        max_output_bytes: int = 50 * 1024 * 1024,
        info_max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
        info_timeout: float | None = 120,
        candidate_timeout: float | None = 60,
        download_timeout: float | None = None,
    ):
        self.binary = binary
        self.encoder = encoder
        self.max_output_bytes = max_output_bytes
        self.info_max_output_bytes = info_max_output_bytes
        self.info_timeout = info_timeout
        self.candidate_timeout = candidate_timeout
        self.download_timeout = download_timeout

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> Extractor:
        return cls(
            binary=config.get("extractor_path") or "yt-dlp",
            encoder=config.get("encoder_path"),
            max_output_bytes=config["max_output_bytes"],
            info_max_output_bytes=config["info_max_output_bytes"],
            info_timeout=config.get("info_timeout"),
            candidate_timeout=config.get("candidate_timeout"),
            download_timeout=config.get("download_timeout"),
        )

    def dump_info(self, url: str, flat: bool = False) -> dict[str, Any]:
        """
        Fetch metadata for a single resource without downloading.

        Args:
            url: Source URL
            flat: Use the cheap flat-playlist listing instead of the full
                  per-resource format list

        Returns:
            The JSON document yt-dlp printed for the resource
        """
        mode = "--flat-playlist" if flat else "--no-playlist"
        result = run_tool(
            self.binary,
            ["-j", mode, "--", url],
            max_output_bytes=self.info_max_output_bytes,
            timeout=self.info_timeout,
        )
        # Playlists print one document per line; the first is the resource itself
        for line in result.stdout.splitlines():
            if line.strip():
                try:
                    info = json.loads(line)
                except json.JSONDecodeError as e:
                    raise ExtractorOutputInvalid(f"Could not parse video info: {e}") from e
                if not isinstance(info, dict):
                    raise ExtractorOutputInvalid("Video info is not a JSON object")
                return info
        raise ExtractorOutputInvalid("yt-dlp returned no video info")

    def direct_url(self, url: str, format_selector: str | None = None) -> str:
        """Resolve the direct media URL(s) for a format; one URL per line."""
        args = ["-g"]
        if format_selector:
            args += ["-f", format_selector]
        result = run_tool(
            self.binary,
            [*args, "--", url],
            max_output_bytes=self.info_max_output_bytes,
            timeout=self.candidate_timeout,
        )
        return result.stdout.strip()

    def download(
        self,
        url: str,
        format_selector: str,
        target: str,
        output_template: str | Path,
        progress: ProgressSink | None = None,
    ) -> None:
        """Download (and merge, via the encoder) into output_template."""
        args = ["-f", format_selector, "--merge-output-format", target, "-o", str(output_template)]
        if self.encoder:
            args += ["--ffmpeg-location", self.encoder]
        run_tool(
            self.binary,
            [*args, "--", url],
            max_output_bytes=self.max_output_bytes,
            progress=progress,
            timeout=self.download_timeout,
        )
