"""REST API routes for taskvault."""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from taskvault.api.handlers import (
    handle_index_status,
    handle_redo,
    handle_task_add_tag,
    handle_task_get,
    handle_task_list,
    handle_task_move,
    handle_task_normalize,
    handle_task_remove_attribute,
    handle_task_remove_tag,
    handle_task_set_attribute,
    handle_task_set_status,
    handle_undo,
)
from taskvault.errors import StaleTaskError
from taskvault.index.task_index import TaskIndex
from taskvault.operations.undoable import UndoableMutations


# ---------------------------------------------------------------------------
# Request body models
# ---------------------------------------------------------------------------


class TaskSelection(BaseModel):
    fingerprints: List[str]


class StatusBody(TaskSelection):
    status: str


class AttributeBody(TaskSelection):
    name: str
    value: str


class AttributeRemoveBody(TaskSelection):
    name: str


class TagBody(TaskSelection):
    tag: str


class MoveBody(TaskSelection):
    due: Optional[str] = None
    tag: Optional[str] = None
    status: Optional[str] = None
    remove_tags: Optional[str] = None


# ---------------------------------------------------------------------------
# Response mapping
# ---------------------------------------------------------------------------


def _mutation_response(result: dict) -> dict:
    """404 for unknown fingerprints; 409/500 when no document could be written."""
    if "error" in result:
        raise HTTPException(status_code=404, detail=result["error"])
    failures = result["failures"]
    if failures and not result["updated"]:
        stale = all(f["code"] == StaleTaskError.code for f in failures.values())
        raise HTTPException(status_code=409 if stale else 500, detail=failures)
    return result


async def _run_mutation(handler, *args, **kwargs) -> dict:
    try:
        result = await handler(*args, **kwargs)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _mutation_response(result)


# ---------------------------------------------------------------------------
# Route registration
# ---------------------------------------------------------------------------


def register_routes(app_router: APIRouter, index: TaskIndex, mutations: UndoableMutations) -> None:
    """Attach all REST routes that use the shared index."""

    # --- Queries ---

    @app_router.get("/tasks")
    def list_tasks(
        status: Optional[str] = Query(None),
        tag: Optional[str] = Query(None),
        document: Optional[str] = Query(None),
        show_ignored: bool = Query(False),
        include_subtasks: bool = Query(False),
        limit: int = Query(200),
    ):
        try:
            return handle_task_list(
                index,
                status=status,
                tag=tag,
                document=document,
                show_ignored=show_ignored,
                include_subtasks=include_subtasks,
                limit=limit,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    @app_router.get("/tasks/lookup")
    def get_task(fingerprint: str = Query(...)):
        result = handle_task_get(index, fingerprint=fingerprint)
        if "error" in result:
            raise HTTPException(status_code=404, detail=result["error"])
        return result

    @app_router.get("/index/status")
    def get_index_status():
        return handle_index_status(index, mutations)

    # --- Mutations ---

    @app_router.post("/tasks/status")
    async def set_status(body: StatusBody):
        return await _run_mutation(
            handle_task_set_status, index, mutations, fingerprints=body.fingerprints, status=body.status
        )

    @app_router.post("/tasks/attributes")
    async def set_attribute(body: AttributeBody):
        return await _run_mutation(
            handle_task_set_attribute,
            index,
            mutations,
            fingerprints=body.fingerprints,
            name=body.name,
            value=body.value,
        )

    @app_router.post("/tasks/attributes/remove")
    async def remove_attribute(body: AttributeRemoveBody):
        return await _run_mutation(
            handle_task_remove_attribute, index, mutations, fingerprints=body.fingerprints, name=body.name
        )

    @app_router.post("/tasks/tags")
    async def add_tag(body: TagBody):
        return await _run_mutation(
            handle_task_add_tag, index, mutations, fingerprints=body.fingerprints, tag=body.tag
        )

    @app_router.post("/tasks/tags/remove")
    async def remove_tag(body: TagBody):
        return await _run_mutation(
            handle_task_remove_tag, index, mutations, fingerprints=body.fingerprints, tag=body.tag
        )

    @app_router.post("/tasks/move")
    async def move_tasks(body: MoveBody):
        return await _run_mutation(handle_task_move, index, mutations, **body.model_dump())

    @app_router.post("/tasks/normalize")
    async def normalize_tasks(body: TaskSelection):
        return await _run_mutation(
            handle_task_normalize, index, mutations, fingerprints=body.fingerprints
        )

    # --- History ---

    @app_router.post("/undo")
    async def undo():
        result = await handle_undo(mutations)
        if "error" in result:
            raise HTTPException(status_code=404, detail=result["error"])
        return result

    @app_router.post("/redo")
    async def redo():
        result = await handle_redo(mutations)
        if "error" in result:
            raise HTTPException(status_code=404, detail=result["error"])
        return result
