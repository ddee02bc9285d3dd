"""Task API endpoints for the Gantt tree.

This module provides a FastAPI router with task listing, creation, field
updates, split, move and cascading delete.  It is mounted at the root of the
app by the ``create_app`` factory.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Optional, Union
from urllib.parse import parse_qsl

from fastapi import APIRouter, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from loguru import logger
from pydantic import BaseModel, ValidationError

from ..engine.ordering import SAME_PARENT
from ..engine.service import GanttService
from ..errors import InvalidInputError, TaskNotFoundError


# ---------------------------------------------------------------------------
# Pydantic request / response models
# ---------------------------------------------------------------------------

class MoveTaskRequest(BaseModel):
    mode: str
    target: Optional[Union[int, str]] = None
    parent: Optional[Union[int, str]] = SAME_PARENT


class CreatedResponse(BaseModel):
    id: str


class SplitResponse(BaseModel):
    id: str
    sibling: Optional[str] = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def read_body(request: Request) -> dict[str, Any]:
    """Read a JSON or form-encoded body as a flat mapping (empty body -> ``{}``)."""
    raw = await request.body()
    if not raw:
        return {}
    content_type = request.headers.get("content-type", "")
    if "application/x-www-form-urlencoded" in content_type:
        return dict(parse_qsl(raw.decode("utf-8"), keep_blank_values=True))
    try:
        data = json.loads(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="Malformed JSON body")
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Expected a JSON object")
    return data


# ---------------------------------------------------------------------------
# Router factory
# ---------------------------------------------------------------------------

def create_task_router(get_service: Callable[[], GanttService]) -> APIRouter:
    """Create the task router.

    Parameters
    ----------
    get_service:
        A callable returning the :class:`GanttService` for the app.
    """
    router = APIRouter(prefix="/tasks", tags=["tasks"])

    @router.get("")
    async def list_tasks() -> list[dict[str, Any]]:
        return get_service().list_tasks()

    @router.post("", response_model=CreatedResponse)
    async def create_task(request: Request) -> CreatedResponse:
        body = await read_body(request)
        try:
            task_id = get_service().create_task(body)
        except InvalidInputError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return CreatedResponse(id=task_id)

    @router.put("/{task_id}")
    async def update_task(task_id: str, request: Request) -> dict[str, Any]:
        body = await read_body(request)
        try:
            get_service().update_task(task_id, body)
        except InvalidInputError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {}

    @router.delete("/{task_id}")
    async def delete_task(task_id: str) -> dict[str, Any]:
        get_service().delete_task(task_id)
        return {}

    @router.post("/{task_id}/split", response_model=SplitResponse, response_model_exclude_none=True)
    async def split_task(task_id: str, request: Request) -> SplitResponse:
        body = await read_body(request)
        try:
            result = get_service().split_task(task_id, body)
        except InvalidInputError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except TaskNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return SplitResponse(**result)

    @router.put("/{task_id}/position", response_model=CreatedResponse)
    async def move_task(task_id: str, request: Request) -> CreatedResponse:
        try:
            body = MoveTaskRequest.model_validate(await read_body(request))
        except ValidationError as e:
            raise RequestValidationError(e.errors())
        target = str(body.target) if body.target is not None else None
        try:
            get_service().move_task(task_id, body.mode, target=target, parent=body.parent)
        except InvalidInputError as e:
            logger.info("Rejected move of task {}: {}", task_id, e)
            raise HTTPException(status_code=400, detail=str(e))
        return CreatedResponse(id=task_id)

    return router
