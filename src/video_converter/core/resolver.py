"""Resolve video metadata and candidate renditions through yt-dlp."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Iterable

from pydantic import ValidationError

from ..config.sources import SourcePolicy
from ..errors import (
    BatchTooLarge,
    ConverterError,
    ExtractorOutputInvalid,
    InvalidRequest,
    NoMatchingFormat,
    ToolExecutionFailed,
)
from ..formatting import UNKNOWN
from ..models import FormatCandidate, VideoInfo
from .extractor import Extractor
from .proxy import MERGE_CONTAINER, build_serve_url, needs_proxy

logger = logging.getLogger(__name__)

MAX_CANDIDATES = 5
MAX_BATCH = 10
DIRECT_CONTAINERS = ("mp4", "webm")

# Used when the source exposes no usable format list
FALLBACK_FORMATS = (
    ("best", "best"),
    ("1080p", "best[height<=1080]"),
    ("720p", "best[height<=720]"),
    ("480p", "best[height<=480]"),
)


def dedupe_candidates(candidates: Iterable[FormatCandidate]) -> list[FormatCandidate]:
    """
    Collapse candidates sharing (container, quality, codec).

    The one with the larger known size wins; first-seen order is kept.
    """
    kept: dict[tuple[str, str, str], FormatCandidate] = {}
    for candidate in candidates:
        key = candidate.dedup_key
        current = kept.get(key)
        if current is None or (candidate.size_bytes or 0) > (current.size_bytes or 0):
            kept[key] = candidate
    return list(kept.values())


def raw_formats(info: dict[str, Any]) -> list[dict[str, Any]]:
    """The format entries of an info document, skipping anything that is not an object."""
    formats = info.get("formats")
    if not isinstance(formats, list):
        return []
    return [f for f in formats if isinstance(f, dict)]


def select_candidates(formats: list[dict[str, Any]], limit: int = MAX_CANDIDATES) -> list[FormatCandidate]:
    """Keep directly playable containers, largest first, capped at limit."""
    candidates = dedupe_candidates(
        FormatCandidate.from_extractor(f) for f in formats if f.get("ext") in DIRECT_CONTAINERS
    )
    candidates.sort(key=lambda c: c.size_bytes or 0, reverse=True)
    return candidates[:limit]


def fallback_candidates() -> list[FormatCandidate]:
    return [FormatCandidate(format_id=selector, ext="mp4", quality=label) for label, selector in FALLBACK_FORMATS]


def parse_info(info: dict[str, Any], direct_only: bool = False) -> VideoInfo:
    """
    Build a VideoInfo from an extractor document.

    Args:
        info: The JSON document yt-dlp printed
        direct_only: Keep only directly playable containers, largest first

    Raises:
        ExtractorOutputInvalid: the document does not fit the models
    """
    try:
        if direct_only:
            formats = select_candidates(raw_formats(info))
        else:
            formats = dedupe_candidates(FormatCandidate.from_extractor(f) for f in raw_formats(info))
        return VideoInfo.from_extractor(info, formats[:MAX_CANDIDATES] or fallback_candidates())
    except ValidationError as e:
        raise ExtractorOutputInvalid(f"Unusable video info: {e.error_count()} invalid field(s)") from e


class FormatResolver:
    """
    Turns a source URL into a VideoInfo.

    ``resolve_info`` is the cheap metadata-only path; ``resolve_info_with_direct_urls``
    additionally resolves one direct URL per candidate, concurrently, and
    rewrites the ones a client cannot use into serve URLs.
    """

    def __init__(self, extractor: Extractor, sources: SourcePolicy | None = None, max_batch: int = MAX_BATCH):
        self.extractor = extractor
        self.sources = sources or SourcePolicy()
        self.max_batch = max_batch

    def resolve_info(self, url: str) -> VideoInfo:
        url = self.sources.validate(url)
        return parse_info(self.extractor.dump_info(url, flat=True))

    def resolve_info_with_direct_urls(self, url: str, serve_base: str, quality_hint: str | None = "best") -> VideoInfo:
        url = self.sources.validate(url)
        video = parse_info(self.extractor.dump_info(url, flat=False), direct_only=True)
        candidates = video.formats

        # Fan out one resolution per candidate and wait for all of them
        with ThreadPoolExecutor(max_workers=len(candidates), thread_name_prefix="resolve") as pool:
            raw_urls = list(pool.map(lambda c: self._resolve_candidate(url, c), candidates))

        title = video.title if video.title != UNKNOWN else "video"
        for candidate, raw in zip(candidates, raw_urls):
            if needs_proxy(raw):
                candidate.url = build_serve_url(serve_base, url, candidate.format_id, title)
                candidate.ext = MERGE_CONTAINER
            else:
                candidate.url = raw.strip()

        if quality_hint and quality_hint != "best":
            # Stable sort: the hinted quality moves to the front
            candidates.sort(key=lambda c: c.quality != quality_hint)

        return video

    def _resolve_candidate(self, url: str, candidate: FormatCandidate) -> str:
        try:
            return self.extractor.direct_url(url, candidate.format_id)
        except ConverterError as e:
            logger.warning(f"Direct URL for format {candidate.format_id} failed: {e}")
            return ""

    def resolve_download_url(self, url: str, quality: str | None = "best") -> str:
        """
        Resolve a single direct link using per-source selector heuristics.

        Retries once with yt-dlp's own default selection when the heuristic
        selector fails.
        """
        url = self.sources.validate(url)
        selector = self.sources.download_selector(url, quality)
        try:
            output = self.extractor.direct_url(url, selector)
        except ToolExecutionFailed as first:
            logger.warning(f"Selector {selector!r} failed for {url}, retrying with default selection")
            try:
                output = self.extractor.direct_url(url, None)
            except ToolExecutionFailed:
                raise first
        lines = [line.strip() for line in output.splitlines() if line.strip()]
        if not lines:
            raise NoMatchingFormat("No matching video format found")
        return lines[0]

    def resolve_batch(self, urls: list[str] | None) -> list[dict[str, Any]]:
        """
        Resolve metadata for several URLs; failures stay per item.

        results[i] always corresponds to urls[i].
        """
        if not urls:
            raise InvalidRequest("urls must be a non-empty list")
        if len(urls) > self.max_batch:
            raise BatchTooLarge(len(urls), self.max_batch)

        with ThreadPoolExecutor(max_workers=min(len(urls), 4), thread_name_prefix="batch") as pool:
            return list(pool.map(self._resolve_batch_item, urls))

    def _resolve_batch_item(self, url: str) -> dict[str, Any]:
        try:
            info = self.resolve_info(url)
        except ConverterError as e:
            logger.warning(f"Batch item {url} failed: {e}")
            return {"url": url, "error": e.message, "success": False}
        return {"url": url, "info": info.to_response(), "success": True}
