"""MCP server for video-converter using FastMCP."""

from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings

from .core import ConverterService
from .errors import ConverterError
from .models import JobStatus

# =============================================================================
# TOOL USAGE GUIDANCE FOR AI ASSISTANTS:
#
# To get a file for a video link:
#   1. get_info     → Title, duration and the available formats
#   2. submit       → Queue a conversion (optionally with a format_id from 1)
#   3. get_status   → Poll until status is "done" or "error"
#   4. Download from /api/video/convert/download/<job id>
#
# Conversions run one at a time; several submissions simply queue up.
# =============================================================================


def build_mcp(service: ConverterService) -> FastMCP:
    """Create the MCP tool surface for one service instance."""
    # Disable DNS rebinding protection to allow any Host header (for Docker/reverse proxy)
    mcp = FastMCP(
        "video-converter",
        transport_security=TransportSecuritySettings(enable_dns_rebinding_protection=False),
    )

    @mcp.tool(name="video_converter_get_info")
    def tool_get_info(url: str) -> dict:
        """
        Get title, author, duration and up to five formats for a video link.

        Does not download anything. Use a returned format_id with
        video_converter_submit to pick a specific rendition.

        Args:
            url: Video URL (YouTube, Bilibili, TikTok, Vimeo, ...)
        """
        try:
            info = service.resolver.resolve_info(url)
        except ConverterError as e:
            return {"success": False, **e.to_dict()}
        return {"success": True, "data": info.to_response()}

    @mcp.tool(name="video_converter_submit")
    def tool_submit(
        url: str,
        format_id: str | None = None,
        target: str = "mp4",
        filename: str | None = None,
    ) -> dict:
        """
        Queue a conversion of a video link into a file.

        Returns immediately with a job id; poll video_converter_get_status.

        Args:
            url: Video URL
            format_id: Format id or yt-dlp selector (default "best")
            target: Output container (mp4, webm, mkv, mov, avi, flv)
            filename: Download filename (optional)
        """
        try:
            url = service.sources.validate(url)
            job_id = service.jobs.submit(url, format_id, target, filename)
        except ConverterError as e:
            return {"success": False, **e.to_dict()}
        return {"success": True, "job_id": job_id, "download": f"/api/video/convert/download/{job_id}"}

    @mcp.tool(name="video_converter_get_status")
    def tool_get_status(job_id: str) -> dict:
        """
        Get the status of a conversion job.

        Args:
            job_id: The job id returned from video_converter_submit
        """
        try:
            job = service.jobs.get(job_id)
        except ConverterError as e:
            return {"success": False, **e.to_dict()}
        return {"success": job.status != JobStatus.ERROR, **job.to_status()}

    @mcp.tool(name="video_converter_list_jobs")
    def tool_list_jobs(status: str | None = None) -> dict[str, Any]:
        """
        List conversion jobs.

        Args:
            status: Filter by status (pending, running, done, error)
        """
        try:
            wanted = JobStatus(status) if status else None
        except ValueError:
            return {"success": False, "error": f"Unknown status: {status}"}
        jobs = service.jobs.list_jobs(wanted)
        return {"success": True, "jobs": [job.to_status() for job in jobs], "count": len(jobs)}

    return mcp
