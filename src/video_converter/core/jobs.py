"""
In-memory conversion job queue with a single serial worker.

Jobs run one at a time: a conversion is a yt-dlp download plus an encoder
merge, and running several at once only makes them contend for the same
CPU and bandwidth.
"""

from __future__ import annotations

import logging
import re
import threading
import time
import uuid
from collections import deque
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from ..config.sources import check_format_selector, check_url
from ..errors import ConverterError, InvalidRequest, JobNotFound, OutputNotFound, QueueClosed
from ..models import TRANSITIONS, ConversionJob, JobStatus
from .extractor import Extractor

logger = logging.getLogger(__name__)

# Containers yt-dlp can merge into
TARGET_CONTAINERS = ("mp4", "webm", "mkv", "mov", "avi", "flv")

_UNSAFE_FILENAME = re.compile(r"[\\/<>:\"'`|?*\x00-\x1f\x7f]")


def sanitize_filename(name: str) -> str:
    """Replace characters that are unsafe in paths or HTTP headers."""
    return _UNSAFE_FILENAME.sub("_", name).strip() or "video"


def find_output(directory: Path, prefix: str) -> Path | None:
    """
    Find the finished ``<prefix>.<ext>`` file in directory.

    Split streams (``<prefix>.f137.mp4``) and partial downloads
    (``<prefix>.mp4.part``) are not outputs.
    """
    if not directory.exists():
        return None
    for path in sorted(directory.glob(f"{prefix}.*")):
        ext = path.name[len(prefix) + 1 :]
        if path.is_file() and ext and "." not in ext and ext not in ("part", "ytdl"):
            return path
    return None


class WorkerState(str, Enum):
    IDLE = "idle"
    DRAINING = "draining"


class JobQueue:
    """
    Owns every ConversionJob for its whole lifetime.

    ``submit`` only records the job and, when the worker is idle, starts a
    drain loop on a background thread. The drain loop processes the FIFO to
    empty and then returns to idle; there is never more than one.
    """

    def __init__(self, extractor: Extractor, work_dir: Path):
        self.extractor = extractor
        self.work_dir = Path(work_dir)
        self._jobs: dict[str, ConversionJob] = {}
        self._queue: deque[str] = deque()
        self._lock = threading.Lock()
        self._state = WorkerState.IDLE
        self._worker: Optional[threading.Thread] = None
        self._closed = False

        # Called with a snapshot after every status transition
        self.on_job_updated: Optional[Callable[[ConversionJob], None]] = None

    @property
    def state(self) -> WorkerState:
        return self._state

    def submit(
        self,
        source_url: str | None,
        format_selector: str | None = None,
        target: str | None = "mp4",
        filename: str | None = None,
    ) -> str:
        """Queue a conversion and return its job id. Never blocks on the conversion."""
        source_url = check_url(source_url)
        format_selector = check_format_selector(format_selector)
        target = (target or "mp4").lower()
        if target not in TARGET_CONTAINERS:
            raise InvalidRequest(f"Unsupported target container: {target}")

        job_id = f"job-{uuid.uuid4().hex}"
        filename = sanitize_filename(filename or f"video_{int(time.time() * 1000)}.{target}")
        job = ConversionJob(
            id=job_id,
            source_url=source_url,
            format_selector=format_selector,
            target=target,
            filename=filename,
        )

        with self._lock:
            if self._closed:
                raise QueueClosed()
            self._jobs[job_id] = job
            self._queue.append(job_id)
            start = self._state == WorkerState.IDLE
            if start:
                self._state = WorkerState.DRAINING
                self._worker = threading.Thread(target=self._drain, name="convert-worker", daemon=True)

        logger.info(f"Queued {job_id}: {source_url} ({format_selector} -> {target})")
        if start:
            self._worker.start()
        return job_id

    def get(self, job_id: str) -> ConversionJob:
        """Return a snapshot of a job, or raise JobNotFound."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFound(job_id)
            return job.model_copy(deep=True)

    def list_jobs(self, status: JobStatus | None = None) -> list[ConversionJob]:
        with self._lock:
            jobs = [job.model_copy(deep=True) for job in self._jobs.values()]
        if status is not None:
            jobs = [job for job in jobs if job.status == status]
        return sorted(jobs, key=lambda job: job.created_at)

    def is_active(self, job_id: str) -> bool:
        """True while a job is pending or running."""
        with self._lock:
            job = self._jobs.get(job_id)
            return job is not None and not job.status.terminal

    def join(self, timeout: float | None = None) -> bool:
        """Wait until the worker is idle. Returns False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                worker = self._worker
                if self._state == WorkerState.IDLE:
                    return True
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return False
            if worker is not None:
                worker.join(timeout=remaining if remaining is None else min(remaining, 0.1))

    def close(self, timeout: float | None = 10) -> None:
        """Stop after the current job; queued jobs stay pending."""
        with self._lock:
            self._closed = True
            worker = self._worker
        if worker is not None and worker.is_alive():
            worker.join(timeout=timeout)

    # ── Worker ────────────────────────────────────────────────────────

    def _drain(self) -> None:
        while True:
            with self._lock:
                if not self._queue or self._closed:
                    self._state = WorkerState.IDLE
                    return
                job = self._jobs[self._queue.popleft()]
            self._process(job)

    def _process(self, job: ConversionJob) -> None:
        self._transition(job, JobStatus.RUNNING)
        try:
            output = self._run_job(job)
        except ConverterError as e:
            logger.warning(f"Job {job.id} failed: {e}")
            self._transition(job, JobStatus.ERROR, error=e.message)
        except Exception as e:
            logger.error(f"Job {job.id} crashed: {e}", exc_info=True)
            self._transition(job, JobStatus.ERROR, error=f"Conversion failed: {e}")
        else:
            self._transition(job, JobStatus.DONE, output_path=str(output))

    def _run_job(self, job: ConversionJob) -> Path:
        self.work_dir.mkdir(parents=True, exist_ok=True)
        template = self.work_dir / f"{job.id}.%(ext)s"

        def progress(text: str) -> None:
            with self._lock:
                job.progress_trace += text
                job.touch()

        self.extractor.download(job.source_url, job.format_selector, job.target, template, progress=progress)

        output = find_output(self.work_dir, job.id)
        if output is None:
            raise OutputNotFound(f"yt-dlp finished but produced no file for {job.id}")
        return output

    def _transition(self, job: ConversionJob, status: JobStatus, **changes) -> None:
        with self._lock:
            if status not in TRANSITIONS[job.status]:
                raise ValueError(f"Illegal transition {job.status.value} -> {status.value} for {job.id}")
            job.status = status
            for key, value in changes.items():
                setattr(job, key, value)
            job.touch()
            snapshot = job.model_copy(deep=True)

        logger.info(f"Job {job.id} is now {status.value}")
        if self.on_job_updated is not None:
            try:
                self.on_job_updated(snapshot)
            except Exception:
                logger.exception("on_job_updated callback failed")
