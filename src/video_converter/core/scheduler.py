"""Scheduler for cleanup tasks."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from ..config import get_cleanup_config
from .cleanup import cleanup_expired_artifacts, remove_artifact

logger = logging.getLogger(__name__)


class CleanupScheduler:
    """
    Manages artifact cleanup using APScheduler.

    Two kinds of jobs run here:
    - a cron-triggered retention sweep over the work directory
    - one-shot removals of serve-on-demand artifacts shortly after they
      were streamed

    Lifecycle:
    - start(): Start the scheduler and add the sweep job if enabled
    - stop(): Gracefully shutdown scheduler
    """

    def __init__(
        self,
        work_dir: Path,
        is_active: Callable[[str], bool] | None = None,
        config: dict[str, Any] | None = None,
    ):
        """Initialize the scheduler."""
        self.scheduler = AsyncIOScheduler()
        self.work_dir = Path(work_dir)
        self.is_active = is_active
        self._config = config
        self._job_id = "cleanup_expired_artifacts"

    @property
    def config(self) -> dict[str, Any]:
        return self._config if self._config is not None else get_cleanup_config()

    async def start(self):
        """Start the scheduler with current config."""
        config = self.config
        self.scheduler.start()

        if not config["enabled"]:
            logger.info("Retention sweep disabled in config")
            return

        # Parse cron expression
        schedule = config["schedule"]
        try:
            trigger = CronTrigger.from_crontab(schedule)
        except ValueError as e:
            logger.error(f"Invalid cron expression '{schedule}': {e}")
            return

        self.scheduler.add_job(
            self._run_cleanup,
            trigger=trigger,
            id=self._job_id,
            replace_existing=True,
            max_instances=1,  # Prevent concurrent runs
        )

        job = self.scheduler.get_job(self._job_id)
        if job:
            logger.info(f"Cleanup scheduler started, next sweep: {job.next_run_time}")
        else:
            logger.warning("Cleanup scheduler started but sweep job not found")

    def schedule_removal(self, path: str | Path, delay: float) -> None:
        """Delete path after delay seconds. Safe to call from any thread."""
        path = Path(path)
        run_date = datetime.now(timezone.utc) + timedelta(seconds=delay)
        self.scheduler.add_job(
            remove_artifact,
            trigger=DateTrigger(run_date=run_date),
            args=[str(path)],
            id=f"remove:{path.name}",
            replace_existing=True,
            misfire_grace_time=None,
        )
        logger.debug(f"Scheduled removal of {path.name} in {delay:g}s")

    async def _run_cleanup(self):
        """Execute the retention sweep (internal wrapper with logging)."""
        retention_days = self.config["retention_days"]

        logger.info(f"Starting scheduled cleanup (retention: {retention_days} days)")

        try:
            # Run cleanup in thread pool to avoid blocking event loop
            result = await asyncio.to_thread(
                cleanup_expired_artifacts, self.work_dir, retention_days, self.is_active
            )

            freed_mb = result["freed_bytes"] / 1024 / 1024
            logger.info(f"Cleanup completed: {result['deleted_count']} files deleted, {freed_mb:.2f} MB freed")

            if result["skipped_active"] > 0:
                logger.info(f"Skipped {result['skipped_active']} files of active jobs")

            if result["errors"]:
                logger.warning(f"Cleanup had {len(result['errors'])} errors:")
                for error in result["errors"]:
                    logger.warning(f"  - {error['file']}: {error['error']}")

        except Exception as e:
            logger.error(f"Cleanup failed with exception: {e}", exc_info=True)

    async def stop(self):
        """Stop the scheduler gracefully."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
            logger.info("Cleanup scheduler stopped")
