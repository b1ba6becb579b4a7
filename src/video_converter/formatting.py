"""Human-readable rendering of durations, counts and sizes."""

from __future__ import annotations

import math

UNKNOWN = "unknown"


def format_duration(seconds: float | None) -> str:
    """Render seconds as M:SS or H:MM:SS."""
    if not seconds:
        return UNKNOWN
    seconds = int(seconds)
    hrs, rem = divmod(seconds, 3600)
    mins, secs = divmod(rem, 60)
    if hrs > 0:
        return f"{hrs}:{mins:02d}:{secs:02d}"
    return f"{mins}:{secs:02d}"


def format_view_count(count: int | None) -> str:
    """Render a view count as 1.2M / 3.4K / 999."""
    if not count:
        return UNKNOWN
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}M"
    if count >= 1000:
        return f"{count / 1000:.1f}K"
    return str(count)


def format_file_size(size: int | None) -> str:
    """Render a byte count using 1024-based units."""
    if not size:
        return UNKNOWN
    units = ["Bytes", "KB", "MB", "GB", "TB"]
    i = min(int(math.log(size, 1024)), len(units) - 1)
    value = round(size / 1024**i, 2)
    return f"{value:g} {units[i]}"
