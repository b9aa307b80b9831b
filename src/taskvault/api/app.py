"""FastAPI application factory for the taskvault REST API."""

from fastapi import APIRouter, FastAPI

from taskvault.api.routes import register_routes
from taskvault.index.task_index import TaskIndex
from taskvault.operations.undoable import UndoableMutations


def create_app(index: TaskIndex, mutations: UndoableMutations) -> FastAPI:
    """Build and return a FastAPI app wired to the given index and mutations."""
    app = FastAPI(title="taskvault", docs_url="/api/docs", openapi_url="/api/openapi.json")

    api = APIRouter(prefix="/api")
    register_routes(api, index, mutations)
    app.include_router(api)

    return app
