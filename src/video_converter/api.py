"""REST API routes for video-converter."""

from __future__ import annotations

import asyncio
from functools import partial
from typing import Annotated, Callable

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import FileResponse, PlainTextResponse
from starlette.types import Receive, Scope, Send

from . import __version__
from .core import ConverterService, fetch_on_demand, job_artifact
from .core.artifacts import Artifact
from .errors import ConverterError
from .models import BatchRequest, ConvertRequest, DownloadRequest, InfoRequest, JobStatus

router = APIRouter()


def get_service(request: Request) -> ConverterService:
    return request.app.state.service


Service = Annotated[ConverterService, Depends(get_service)]


class EphemeralFileResponse(FileResponse):
    """
    FileResponse that runs on_close however the response ends.

    A BackgroundTask is skipped when the client disconnects mid-stream;
    on_close also runs when sending fails or the request is cancelled.
    """

    def __init__(self, *args, on_close: Callable[[], None], **kwargs):
        super().__init__(*args, **kwargs)
        self.on_close = on_close

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self.on_close()


def _stream(artifact: Artifact) -> FileResponse:
    return FileResponse(artifact.path, media_type=artifact.media_type, headers=artifact.headers())


def _discard_abandoned(service: ConverterService, fetch: asyncio.Future) -> None:
    if fetch.cancelled() or fetch.exception() is not None:
        return
    service.cleanup_scheduler.schedule_removal(fetch.result().path, 0)


@router.get("/health")
async def health():
    """Health check and service info."""
    return {
        "name": "video-converter",
        "version": __version__,
        "status": "healthy",
        "endpoints": {
            "api": "/api",
            "mcp": "/mcp",
            "docs": "/docs",
        },
    }


@router.post("/video/info")
async def api_video_info(body: InfoRequest, service: Service):
    """Describe a video and list up to five formats, without resolving links."""
    info = await asyncio.to_thread(service.resolver.resolve_info, body.url)
    return info.to_response()


@router.post("/video/info-with-download")
async def api_video_info_with_download(body: DownloadRequest, request: Request, service: Service):
    """
    Describe a video and resolve a usable link for each listed format.

    Formats whose direct link is segmented, split into separate streams or
    missing point at ``/api/video/serve`` instead, which merges to mp4.
    """
    info = await asyncio.to_thread(
        service.resolver.resolve_info_with_direct_urls,
        body.url,
        str(request.base_url),
        body.quality,
    )
    return info.to_response()


@router.post("/video/download")
async def api_video_download(body: DownloadRequest, service: Service):
    """Resolve one direct download link."""
    download_url = await asyncio.to_thread(service.resolver.resolve_download_url, body.url, body.quality)
    return {"downloadUrl": download_url}


@router.post("/video/batch-info")
async def api_video_batch_info(body: BatchRequest, service: Service):
    """Describe up to ten videos; each result succeeds or fails on its own."""
    results = await asyncio.to_thread(service.resolver.resolve_batch, body.urls)
    return {"results": results}


@router.post("/video/convert", status_code=202)
async def api_video_convert(body: ConvertRequest, service: Service):
    """Queue a conversion. Returns immediately with the task id."""
    url = service.sources.validate(body.url)
    task_id = service.jobs.submit(url, body.format_id, body.target, body.filename)
    return {"taskId": task_id}


@router.get("/video/convert/status/{job_id}")
async def api_video_convert_status(job_id: str, service: Service):
    """Get the status of a conversion job."""
    return service.jobs.get(job_id).to_status()


@router.get("/video/convert/jobs")
async def api_video_convert_jobs(
    service: Service,
    status: Annotated[JobStatus | None, Query(description="Filter by status (pending, running, done, error)")] = None,
):
    """List conversion jobs."""
    jobs = service.jobs.list_jobs(status)
    return {"jobs": [job.to_status() for job in jobs], "count": len(jobs)}


@router.get("/video/convert/download/{job_id}")
async def api_video_convert_download(job_id: str, service: Service):
    """Stream the output of a finished job. The file is kept for re-download."""
    try:
        artifact = job_artifact(service.jobs, job_id)
    except ConverterError as e:
        return PlainTextResponse(e.message, status_code=e.status_code)
    return _stream(artifact)


@router.get("/video/serve")
async def api_video_serve(
    service: Service,
    u: Annotated[str | None, Query(description="Source video URL")] = None,
    f: Annotated[str | None, Query(description="Format id or selector")] = None,
    t: Annotated[str | None, Query(description="Title used for the filename")] = None,
):
    """
    Fetch, merge and stream one format on demand.

    The merged file is deleted a short delay after the response ends.
    """
    if not u:
        return PlainTextResponse("Missing parameter: u", status_code=400)
    fetch = asyncio.ensure_future(
        asyncio.to_thread(fetch_on_demand, service.extractor, service.sources, service.work_dir, u, f, t)
    )
    try:
        artifact = await asyncio.shield(fetch)
    except ConverterError as e:
        return PlainTextResponse(e.message, status_code=e.status_code)
    except asyncio.CancelledError:
        # The download thread keeps running; drop its file once it lands
        fetch.add_done_callback(partial(_discard_abandoned, service))
        raise

    return EphemeralFileResponse(
        artifact.path,
        media_type=artifact.media_type,
        headers=artifact.headers(),
        on_close=partial(service.cleanup_scheduler.schedule_removal, artifact.path, service.serve_cleanup_delay),
    )

