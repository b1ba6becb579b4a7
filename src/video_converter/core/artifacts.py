"""Locate conversion artifacts and build the headers used to stream them."""

from __future__ import annotations

import logging
import mimetypes
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

from ..config.sources import SourcePolicy, check_format_selector
from ..errors import ArtifactMissing, NoOutputProduced, NotReady
from ..models import JobStatus
from .cleanup import remove_artifact
from .extractor import Extractor
from .jobs import JobQueue, find_output, sanitize_filename
from .proxy import MERGE_CONTAINER

logger = logging.getLogger(__name__)

_NON_ASCII = re.compile(r"[^\x20-\x7e]")


@dataclass
class Artifact:
    """A file ready to be streamed, and whether it is deleted afterwards."""

    path: Path
    filename: str
    media_type: str
    ephemeral: bool = False

    @property
    def size(self) -> int:
        return self.path.stat().st_size

    def headers(self) -> dict[str, str]:
        return {
            "Content-Length": str(self.size),
            "Content-Disposition": content_disposition(self.filename),
        }


def content_disposition(filename: str) -> str:
    """
    Attachment header with both an ASCII filename and an RFC 5987 UTF-8 one.

    Old clients only read ``filename``; everything else prefers ``filename*``.
    """
    safe = sanitize_filename(filename)
    ascii_name = _NON_ASCII.sub("_", safe)
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(safe, safe='')}"


def guess_media_type(path: Path) -> str:
    media_type, _ = mimetypes.guess_type(path.name)
    return media_type or "application/octet-stream"


def discard_partials(work_dir: Path, token: str) -> int:
    """Remove every file yt-dlp left behind for token (.part files, split streams)."""
    removed = 0
    for path in work_dir.glob(f"{token}.*"):
        if remove_artifact(path):
            removed += 1
    if removed:
        logger.info(f"Discarded {removed} leftover file(s) of {token}")
    return removed


def job_artifact(jobs: JobQueue, job_id: str) -> Artifact:
    """
    Return the finished artifact of a job.

    Raises:
        JobNotFound: unknown job id
        NotReady: the job is not done yet
        ArtifactMissing: the file was removed by the retention sweep
    """
    job = jobs.get(job_id)
    if job.status != JobStatus.DONE or not job.output_path:
        raise NotReady(f"Job {job_id} is {job.status.value}, no output yet")

    path = Path(job.output_path)
    if not path.is_file():
        raise ArtifactMissing(f"Output of {job_id} is no longer available")
    return Artifact(path=path, filename=job.filename or path.name, media_type=guess_media_type(path))


def fetch_on_demand(
    extractor: Extractor,
    sources: SourcePolicy,
    work_dir: Path,
    url: str | None,
    format_id: str | None = None,
    title: str | None = None,
) -> Artifact:
    """
    Download and merge one format synchronously, for the serve endpoint.

    The returned artifact is ephemeral: the caller removes it after streaming.
    """
    url = sources.validate(url)
    format_id = check_format_selector(format_id)
    work_dir = Path(work_dir)
    work_dir.mkdir(parents=True, exist_ok=True)

    token = f"serve-{uuid.uuid4().hex}"
    logger.info(f"Serving {url} format {format_id} as {token}")
    try:
        extractor.download(url, format_id, MERGE_CONTAINER, work_dir / f"{token}.%(ext)s")
        path = find_output(work_dir, token)
        if path is None:
            raise NoOutputProduced("yt-dlp finished but no file was produced")
    except Exception:
        discard_partials(work_dir, token)
        raise

    filename = f"{sanitize_filename(title or 'video')}.{MERGE_CONTAINER}"
    return Artifact(path=path, filename=filename, media_type="video/mp4", ephemeral=True)
