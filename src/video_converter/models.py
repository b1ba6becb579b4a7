"""Data models for video-converter."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .formatting import UNKNOWN, format_duration, format_file_size, format_view_count

DEFAULT_THUMBNAIL = "https://via.placeholder.com/300x200.png?text=No+Thumbnail"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _text(value: Any, default: str = UNKNOWN) -> str:
    """Extractor strings, or the default when missing or of the wrong type."""
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value
    return default


def _number(value: Any) -> float | None:
    """Numeric extractor fields; "1.2K views" and the like become None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return value


class JobStatus(str, Enum):
    """Conversion job status."""

    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self in (JobStatus.DONE, JobStatus.ERROR)


# Allowed status transitions; terminal states have none
TRANSITIONS: dict[JobStatus, tuple[JobStatus, ...]] = {
    JobStatus.PENDING: (JobStatus.RUNNING,),
    JobStatus.RUNNING: (JobStatus.DONE, JobStatus.ERROR),
    JobStatus.DONE: (),
    JobStatus.ERROR: (),
}


class ConversionJob(BaseModel):
    """A queued conversion job."""

    id: str
    source_url: str
    format_selector: str = "best"
    target: str = "mp4"
    filename: str
    status: JobStatus = JobStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    output_path: str | None = None
    error: str | None = None
    progress_trace: str = ""

    def touch(self) -> None:
        # Never let updated_at move backwards, even if the wall clock does
        self.updated_at = max(utcnow(), self.updated_at)

    @property
    def progress(self) -> str | None:
        for line in reversed(self.progress_trace.replace("\r", "\n").splitlines()):
            if line.strip():
                return line.strip()
        return None

    def to_status(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "filename": self.filename,
            "targetContainer": self.target,
            "progress": self.progress,
            "error": self.error,
        }


class FormatCandidate(BaseModel):
    """One rendition offered by a source."""

    format_id: str
    ext: str = "mp4"
    quality: str = UNKNOWN
    codec: str = UNKNOWN
    size_bytes: int | None = None
    url: str | None = None

    @classmethod
    def from_extractor(cls, fmt: dict[str, Any]) -> FormatCandidate:
        height = _number(fmt.get("height"))
        if height and height > 0:
            quality = f"{int(height)}p"
        else:
            quality = _text(fmt.get("format_note"), default=_text(fmt.get("quality")))
        size = _number(fmt.get("filesize")) or _number(fmt.get("filesize_approx"))
        return cls(
            format_id=_text(fmt.get("format_id"), default="best"),
            ext=_text(fmt.get("ext"), default="mp4"),
            quality=quality,
            codec=_text(fmt.get("vcodec")),
            size_bytes=int(size) if size and size > 0 else None,
        )

    @property
    def dedup_key(self) -> tuple[str, str, str]:
        return (self.ext, self.quality, self.codec)

    def to_response(self) -> dict[str, Any]:
        return {
            "quality": self.quality,
            "format": self.ext,
            "size": format_file_size(self.size_bytes),
            "url": self.url or "",
            "format_id": self.format_id,
        }


class VideoInfo(BaseModel):
    """Descriptive info for one resource plus its candidate renditions."""

    title: str = UNKNOWN
    author: str = UNKNOWN
    duration_seconds: float | None = None
    view_count: int | None = None
    publish_date: str = UNKNOWN
    thumbnail: str = DEFAULT_THUMBNAIL
    formats: list[FormatCandidate] = Field(default_factory=list)

    @classmethod
    def from_extractor(cls, info: dict[str, Any], formats: list[FormatCandidate]) -> VideoInfo:
        view_count = _number(info.get("view_count"))
        return cls(
            title=_text(info.get("title")),
            author=_text(info.get("uploader"), default=_text(info.get("channel"))),
            duration_seconds=_number(info.get("duration")),
            view_count=int(view_count) if view_count is not None else None,
            publish_date=_text(info.get("upload_date")),
            thumbnail=_text(info.get("thumbnail"), default=DEFAULT_THUMBNAIL),
            formats=formats,
        )

    def to_response(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "duration": format_duration(self.duration_seconds),
            "author": self.author,
            "viewCount": format_view_count(self.view_count),
            "publishDate": self.publish_date,
            "formats": [f.to_response() for f in self.formats],
            "thumbnail": self.thumbnail,
        }


# Request bodies


class InfoRequest(BaseModel):
    url: str | None = None


class DownloadRequest(BaseModel):
    url: str | None = None
    quality: str = "best"


class BatchRequest(BaseModel):
    urls: list[str] | None = None


class ConvertRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str | None = None
    format_id: str | None = Field(default=None, alias="formatId")
    target: str = "mp4"
    filename: str | None = None
