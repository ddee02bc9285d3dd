"""Link, assignment, resource and category endpoints.

These are field-whitelisting passthroughs to the store; the task-side
effects (cascading removal on task delete) live in the engine.
"""

from __future__ import annotations

from typing import Any, Callable

from fastapi import APIRouter, HTTPException, Request

from ..engine.service import GanttService
from ..errors import InvalidInputError
from .task_api import CreatedResponse, read_body


def create_resource_router(get_service: Callable[[], GanttService]) -> APIRouter:
    router = APIRouter(tags=["links", "assignments", "resources"])

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    @router.get("/links")
    async def list_links() -> list[dict[str, Any]]:
        return get_service().list_links()

    @router.post("/links", response_model=CreatedResponse)
    async def create_link(request: Request) -> CreatedResponse:
        body = await read_body(request)
        try:
            return CreatedResponse(id=get_service().create_link(body))
        except InvalidInputError as e:
            raise HTTPException(status_code=400, detail=str(e))

    @router.put("/links/{link_id}")
    async def update_link(link_id: str, request: Request) -> dict[str, Any]:
        body = await read_body(request)
        try:
            get_service().update_link(link_id, body)
        except InvalidInputError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {}

    @router.delete("/links/{link_id}")
    async def delete_link(link_id: str) -> dict[str, Any]:
        get_service().delete_link(link_id)
        return {}

    # ------------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------------

    @router.get("/assignments")
    async def list_assignments() -> list[dict[str, Any]]:
        return get_service().list_assignments()

    @router.post("/assignments", response_model=CreatedResponse)
    async def create_assignment(request: Request) -> CreatedResponse:
        body = await read_body(request)
        try:
            return CreatedResponse(id=get_service().create_assignment(body))
        except InvalidInputError as e:
            raise HTTPException(status_code=400, detail=str(e))

    @router.put("/assignments/{assignment_id}")
    async def update_assignment(assignment_id: str, request: Request) -> dict[str, Any]:
        body = await read_body(request)
        try:
            get_service().update_assignment(assignment_id, body)
        except InvalidInputError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {}

    @router.delete("/assignments/{assignment_id}")
    async def delete_assignment(assignment_id: str) -> dict[str, Any]:
        get_service().delete_assignment(assignment_id)
        return {}

    # ------------------------------------------------------------------
    # Read-only lookups
    # ------------------------------------------------------------------

    @router.get("/resources")
    async def list_resources() -> list[dict[str, Any]]:
        return get_service().list_resources()

    @router.get("/categories")
    async def list_categories() -> list[dict[str, Any]]:
        return get_service().list_categories()

    return router
