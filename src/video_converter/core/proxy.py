"""Decide whether a resolved media URL can be handed to the client as-is."""

from __future__ import annotations

from urllib.parse import urlencode

# Segmented streams that a browser cannot save as a single file
SEGMENT_MARKERS = (".m4s", ".m3u8")

# Container the serve endpoint always merges into
MERGE_CONTAINER = "mp4"

SERVE_PATH = "api/video/serve"


def needs_proxy(raw_url: str | None) -> bool:
    """
    True when the client cannot use raw_url directly.

    That is the case for an empty result, a segment file, or more than one
    line of output (separate video and audio streams that must be merged).
    """
    if not raw_url or not raw_url.strip():
        return True
    raw_url = raw_url.strip()
    if any(marker in raw_url for marker in SEGMENT_MARKERS):
        return True
    return len(raw_url.splitlines()) > 1


def build_serve_url(base_url: str, source_url: str, format_id: str, title: str) -> str:
    """Build the same-origin serve URL that fetches and merges on demand."""
    query = urlencode({"u": source_url, "f": format_id, "t": title or "video"})
    return f"{base_url.rstrip('/')}/{SERVE_PATH}?{query}"
