"""Core functionality for video-converter."""

from .artifacts import Artifact, content_disposition, fetch_on_demand, job_artifact
from .cleanup import cleanup_expired_artifacts, remove_artifact
from .extractor import Extractor
from .invoker import ToolResult, run_tool
from .jobs import JobQueue, sanitize_filename
from .proxy import build_serve_url, needs_proxy
from .resolver import FormatResolver
from .scheduler import CleanupScheduler
from .service import ConverterService

__all__ = [
    "run_tool",
    "ToolResult",
    "Extractor",
    "FormatResolver",
    "needs_proxy",
    "build_serve_url",
    "JobQueue",
    "sanitize_filename",
    "Artifact",
    "content_disposition",
    "fetch_on_demand",
    "job_artifact",
    # Cleanup
    "cleanup_expired_artifacts",
    "remove_artifact",
    "CleanupScheduler",
    "ConverterService",
]
