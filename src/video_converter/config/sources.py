"""
Source configuration - supported hosts and per-host format selectors.

This is "code as configuration" - modify this file to add sources or tune
the format selectors handed to yt-dlp.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from urllib.parse import urlparse

from ..errors import InvalidFormat, InvalidUrl, UnsupportedSource


@dataclass(frozen=True)
class Source:
    """A known media host and the selector used for one-shot direct links."""

    name: str
    hosts: tuple[str, ...]
    selector: str | None = None


SOURCES: tuple[Source, ...] = (
    # Bilibili serves separate audio/video streams; prefer a mergeable pair
    Source(
        "bilibili",
        ("bilibili.com", "b23.tv"),
        "bv*[ext=mp4][height<=1080]+ba[ext=m4a]/b[ext=mp4][height<=1080]/bv*+ba/b[height<=1080]/best",
    ),
    Source("youtube", ("youtube.com", "youtu.be"), "best[ext=mp4][height<=1080]/best[height<=1080]/best"),
    Source("douyin", ("douyin.com", "iesdouyin.com"), "best[ext=mp4]/best"),
    Source("tiktok", ("tiktok.com",), "best[ext=mp4]/best"),
    Source("twitter", ("twitter.com", "x.com")),
    Source("vimeo", ("vimeo.com",)),
    Source("instagram", ("instagram.com",)),
    Source("dailymotion", ("dailymotion.com", "dai.ly")),
    Source("twitch", ("twitch.tv",)),
    Source("facebook", ("facebook.com", "fb.watch")),
)

GENERIC_SELECTOR = "best[ext=mp4]/best"

# yt-dlp format selection grammar: ids, filters, merges and fallbacks
_SELECTOR_RE = re.compile(r"[A-Za-z0-9_*][A-Za-z0-9_\-+/\[\]<>=!^$~*.:,?()|]*")
MAX_SELECTOR_LENGTH = 256


def _host(url: str) -> str:
    return (urlparse(url).hostname or "").lower()


def _host_matches(host: str, markers: tuple[str, ...]) -> bool:
    # "x.com" must match "mobile.x.com" but not "dropbox.com"
    return any(host == marker or host.endswith("." + marker) for marker in markers)


def match_source(url: str) -> Source | None:
    """Match a URL to a known source by host."""
    host = _host(url)
    for source in SOURCES:
        if _host_matches(host, source.hosts):
            return source
    return None


def check_url(url: str | None) -> str:
    """Validate that url is an absolute http(s) URL and return it stripped."""
    if not url or not url.strip():
        raise InvalidUrl("url is required")
    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise InvalidUrl(f"Invalid URL: {url}")
    return url


def check_format_selector(selector: str | None, default: str = "best") -> str:
    """Validate a client-supplied format id or selector."""
    if selector is None or not selector.strip():
        return default
    selector = selector.strip()
    if len(selector) > MAX_SELECTOR_LENGTH or not _SELECTOR_RE.fullmatch(selector):
        raise InvalidFormat(f"Invalid format selector: {selector!r}")
    return selector


@dataclass
class SourcePolicy:
    """Allow-list of hosts the service accepts links for."""

    extra_hosts: tuple[str, ...] = field(default_factory=tuple)
    allow_all_hosts: bool = False

    @classmethod
    def from_config(cls, config: dict) -> SourcePolicy:
        return cls(
            extra_hosts=tuple(h.lower() for h in config.get("extra_hosts", [])),
            allow_all_hosts=bool(config.get("allow_all_hosts", False)),
        )

    def is_supported(self, url: str) -> bool:
        if self.allow_all_hosts or match_source(url) is not None:
            return True
        return _host_matches(_host(url), self.extra_hosts)

    def validate(self, url: str | None) -> str:
        """Return the cleaned URL or raise InvalidUrl / UnsupportedSource."""
        url = check_url(url)
        if not self.is_supported(url):
            raise UnsupportedSource(
                f"Unsupported source: {_host(url)}",
                note="Add the host to service.extra_hosts in config.json to allow it.",
            )
        return url

    def download_selector(self, url: str, quality: str | None = "best") -> str:
        """Pick the selector for a one-shot direct-link request."""
        source = match_source(url)
        if source is not None and source.selector:
            return source.selector
        quality = check_format_selector(quality)
        return GENERIC_SELECTOR if quality == "best" else quality
