"""The service object owning every long-lived part of video-converter."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from ..config import SourcePolicy, get_cleanup_config, get_service_config, get_tool_config, get_work_dir
from .extractor import Extractor
from .jobs import JobQueue
from .resolver import FormatResolver
from .scheduler import CleanupScheduler

logger = logging.getLogger(__name__)


class ConverterService:
    """
    Holds the extractor, resolver, job queue and cleanup scheduler.

    Handlers receive it from ``app.state``; its lifetime is the lifespan
    of the application that started it.
    """

    def __init__(
        self,
        extractor: Extractor,
        work_dir: Path,
        sources: SourcePolicy | None = None,
        max_batch: int = 10,
        serve_cleanup_delay: float = 2.0,
        cleanup_config: dict[str, Any] | None = None,
    ):
        self.extractor = extractor
        self.work_dir = Path(work_dir)
        self.sources = sources or SourcePolicy()
        self.serve_cleanup_delay = serve_cleanup_delay
        self.resolver = FormatResolver(extractor, self.sources, max_batch=max_batch)
        self.jobs = JobQueue(extractor, self.work_dir)
        self.cleanup_scheduler = CleanupScheduler(self.work_dir, is_active=self.jobs.is_active, config=cleanup_config)

    @classmethod
    def from_config(cls) -> ConverterService:
        service = get_service_config()
        return cls(
            extractor=Extractor.from_config(get_tool_config()),
            work_dir=get_work_dir(),
            sources=SourcePolicy.from_config(service),
            max_batch=service["max_batch"],
            serve_cleanup_delay=service["serve_cleanup_delay"],
            cleanup_config=get_cleanup_config(),
        )

    async def start(self) -> None:
        self.work_dir.mkdir(parents=True, exist_ok=True)
        await self.cleanup_scheduler.start()
        logger.info(f"Converter service started, artifacts in {self.work_dir}")

    async def stop(self) -> None:
        await self.cleanup_scheduler.stop()
        self.jobs.close()
        logger.info("Converter service stopped")
