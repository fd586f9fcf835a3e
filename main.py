from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from docker.errors import DockerException
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from dsvc import db
from dsvc.api_models import AdjustOptions, CreateServiceRequest, PullRequest, ScaleRequest, UpdateServiceRequest
from dsvc.db import EventRecorder
from dsvc.errors import (
    DockerServicesError,
    MonitorTimeoutError,
    NotFoundError,
    TaskFailureError,
    ValidationError,
    VersionConflictError,
)
from dsvc.services import ServiceController
from dsvc.settings import settings


_STATUS = {
    ValidationError: 422,
    NotFoundError: 404,
    VersionConflictError: 409,
    TaskFailureError: 502,
    MonitorTimeoutError: 504,
}


def _status_for(exc: DockerServicesError) -> int:
    for cls, code in _STATUS.items():
        if isinstance(exc, cls):
            return code
    return 400


def create_app(
    controller: ServiceController | None = None,
    db_path: str | None = None,
    record_events: bool | None = None,
) -> FastAPI:
    """Build the HTTP API around a ServiceController.

    When no controller is given one is created against the local engine, with
    an EventRecorder listener if event recording is enabled.
    """
    record = settings.record_events if record_events is None else record_events
    if controller is None:
        controller = ServiceController(listener=EventRecorder(db_path) if record else None)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db.init_db(db_path)
        yield
        close = getattr(controller.listener, "close", None)
        if close is not None:
            close()

    app = FastAPI(title="Docker Services Controller", lifespan=lifespan)
    app.state.controller = controller

    @app.exception_handler(DockerServicesError)
    async def _service_error(request: Request, exc: DockerServicesError) -> JSONResponse:
        body: dict[str, Any] = {"detail": str(exc), "error": type(exc).__name__}
        if isinstance(exc, TaskFailureError):
            body.update(task_id=exc.task_id, state=exc.state, task_error=exc.detail)
        return JSONResponse(status_code=_status_for(exc), content=body)

    @app.exception_handler(DockerException)
    async def _engine_error(request: Request, exc: DockerException) -> JSONResponse:
        return JSONResponse(status_code=502, content={"detail": str(exc), "error": type(exc).__name__})

    @app.get("/services/{name}")
    async def get_service(name: str) -> dict[str, Any]:
        return await controller.get(name)

    @app.get("/services/{name}/exists")
    async def service_exists(name: str) -> dict[str, Any]:
        return {"service": name, "exists": await controller.exists(name)}

    @app.get("/services/{name}/tasks")
    async def service_tasks(name: str) -> list[dict[str, Any]]:
        tasks = await controller.get_tasks(name)
        return [{"id": t.id, "state": t.state, "error": t.error, "slot": t.slot} for t in tasks]

    @app.post("/services", status_code=201)
    async def create_service(req: CreateServiceRequest) -> dict[str, Any]:
        op = await controller.create(req.spec, detach=req.detach)
        return op.as_dict()

    @app.put("/services/{name}")
    async def update_service(name: str, req: UpdateServiceRequest) -> dict[str, Any]:
        spec = dict(req.spec)
        spec["Name"] = name
        op = await controller.update(spec, detach=req.detach)
        return op.as_dict()

    @app.post("/services/{name}/adjust")
    async def adjust_service(name: str, options: AdjustOptions) -> dict[str, Any]:
        op = await controller.adjust(name, options)
        return op.as_dict()

    @app.post("/services/{name}/scale")
    async def scale_service(name: str, req: ScaleRequest) -> dict[str, Any]:
        op = await controller.scale(name, req.replicas)
        return op.as_dict()

    @app.delete("/services/{name}")
    async def remove_service(name: str) -> dict[str, Any]:
        await controller.remove(name)
        return {"service": name, "removed": True}

    @app.get("/images")
    async def list_images() -> list[dict[str, Any]]:
        return await controller.list()

    @app.post("/images/pull")
    async def pull_image(req: PullRequest) -> dict[str, Any]:
        progress = await controller.pull(req.name)
        return {"image": req.name, "progress": progress}

    @app.get("/events")
    def events(limit: int = Query(50, ge=1, le=1000), service: str | None = None) -> list[dict[str, Any]]:
        return db.latest_events(limit=limit, service_name=service, path=db_path)

    return app


app = create_app()
