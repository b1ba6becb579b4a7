"""FastAPI application for video-converter."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import __version__
from .api import router as api_router
from .config import ensure_dirs, get_service_config
from .core import ConverterService
from .errors import ConverterError
from .server import build_mcp

logger = logging.getLogger(__name__)


def create_app(service: ConverterService | None = None) -> FastAPI:
    """Build the application around a service (one is created from config if omitted)."""
    if service is None:
        service = ConverterService.from_config()
    mcp = build_mcp(service)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan."""
        ensure_dirs()
        await service.start()

        # Initialize MCP session manager (required for streamable HTTP)
        mcp.streamable_http_app()
        async with mcp.session_manager.run():
            yield

        await service.stop()

    app = FastAPI(
        title="Video Converter",
        description="Resolve, convert and stream videos from media-hosting links",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service

    @app.exception_handler(ConverterError)
    async def converter_error_handler(request: Request, exc: ConverterError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
        )
        return JSONResponse(status_code=400, content={"error": f"Invalid request: {problems}", "code": "InvalidRequest"})

    # Include REST API routes
    app.include_router(api_router, prefix="/api", tags=["API"])

    # Mount MCP server routes (streamable HTTP only, provides /mcp endpoint)
    app.mount("/", mcp.streamable_http_app())

    return app


app = create_app()


def main():
    """Run the server."""
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    config = get_service_config()
    uvicorn.run(
        "video_converter.app:app",
        host=config["host"],
        port=config["port"],
        reload=False,
    )


if __name__ == "__main__":
    main()
