"""FastAPI web server for the Gantt task tree."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from .. import __version__
from ..engine.service import GanttService
from ..errors import StoreError
from ..project import open_project
from .resource_api import create_resource_router
from .task_api import create_task_router


def create_app(
    project_dir: Optional[Path] = None,
    enable_cors: bool = True,
    service: Optional[GanttService] = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        project_dir: Project directory whose `.gantt/config.yaml` selects storage.
        enable_cors: Whether to enable CORS.
        service: Pre-built service (skips reading the project config).

    Returns:
        Configured FastAPI app.
    """
    app = FastAPI(
        title="Gantt Tree",
        description="Hierarchical task tree with ordering, split and cascading delete",
        version=__version__,
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.service = service if service is not None else open_project(project_dir)

    def _get_service() -> GanttService:
        return app.state.service

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        logger.error("Store failure on {} {}: {}", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": "Gantt Tree",
            "version": __version__,
            "status": "running",
            "project": app.state.service.store.project_id,
        }

    app.include_router(create_task_router(_get_service))
    app.include_router(create_resource_router(_get_service))

    return app
