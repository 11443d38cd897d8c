from __future__ import annotations

import json
from typing import Any, Dict, List, Tuple

import pydantic
from prometheus_client.exposition import CONTENT_TYPE_LATEST, generate_latest
from sanic import Request, Sanic, response
from sanic.log import logger

from commitstatus.config import SETTINGS, Settings
from commitstatus.controller import StatusRecordEvent, WorkloadInstanceEvent
from commitstatus.errors import DataIntegrityError, NotFoundError
from commitstatus.logger import configure_logging, get_log_handlers
from commitstatus.metric import event_counter
from commitstatus.model import PipelineActivity, SubCheck, WorkloadInstance
from commitstatus.runtime import Runtime, open_runtime


class CheckResults(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid")

    sha: str = pydantic.Field(min_length=1)
    checks: List[SubCheck] = pydantic.Field(default_factory=list)


def _decode(body: bytes) -> Any:
    return json.loads(body or b"null")


async def process_workload_event(
    runtime: Runtime, body: bytes
) -> Tuple[int, Dict[str, Any]]:
    try:
        data = _decode(body)
        if not isinstance(data, dict):
            return 400, {"error": "Expected a pod object"}
        instance = WorkloadInstance.from_pod(data)
    except (ValueError, KeyError, TypeError) as exc:
        event_counter.labels(kind="workload", result="invalid").inc()
        return 400, {"error": str(exc)}

    if not instance.name:
        event_counter.labels(kind="workload", result="invalid").inc()
        return 400, {"error": "Pod has no name"}

    logger.debug("Received workload event for %s", instance.name)
    await runtime.controller.submit(WorkloadInstanceEvent(instance))
    return 202, {"queued": instance.name}


async def process_results(
    runtime: Runtime, name: str, body: bytes
) -> Tuple[int, Dict[str, Any]]:
    try:
        results = CheckResults.model_validate(_decode(body))
    except ValueError as exc:
        return 400, {"error": str(exc)}

    try:
        record = await runtime.reconciler.record_results(
            name, results.sha, results.checks
        )
    except NotFoundError as exc:
        return 404, {"error": str(exc)}
    except DataIntegrityError as exc:
        logger.error("Cannot record results for %s: %s", name, exc)
        return 409, {"error": str(exc)}

    await runtime.controller.submit(StatusRecordEvent(record, results.sha))
    return 202, {"queued": record.name, "resource_version": record.resource_version}


async def process_activity(
    runtime: Runtime, body: bytes
) -> Tuple[int, Dict[str, Any]]:
    try:
        activity = PipelineActivity.model_validate(_decode(body))
    except ValueError as exc:
        return 400, {"error": str(exc)}
    if not activity.name:
        return 400, {"error": "Pipeline activity has no name"}

    runtime.store.upsert_activity(activity)
    logger.info("Recorded pipeline activity %s uid=%s", activity.name, activity.uid)
    return 200, {"recorded": activity.name, "uid": activity.uid}


def create_app(settings: Settings = SETTINGS) -> Sanic:
    configure_logging(settings)
    app = Sanic("commitstatus")

    get_log_handlers(logger, settings)

    @app.listener("before_server_start")
    async def init(app, loop):
        logger.debug("Opening runtime with database %s", settings.DB_PATH)
        app.ctx.runtime_cm = open_runtime(settings)
        app.ctx.runtime = await app.ctx.runtime_cm.__aenter__()

    @app.listener("after_server_stop")
    async def close(app, loop):
        await app.ctx.runtime_cm.__aexit__(None, None, None)

    @app.get("/status")
    async def status(request: Request):
        return response.text("ok")

    @app.get("/metrics")
    async def metrics(request: Request):
        return response.raw(generate_latest(), content_type=CONTENT_TYPE_LATEST)

    @app.post("/events/workload")
    async def workload_event(request: Request):
        code, payload = await process_workload_event(app.ctx.runtime, request.body)
        return response.json(payload, status=code)

    @app.post("/activities")
    async def activity(request: Request):
        code, payload = await process_activity(app.ctx.runtime, request.body)
        return response.json(payload, status=code)

    @app.post("/records/<name>/results")
    async def record_results(request: Request, name: str):
        code, payload = await process_results(app.ctx.runtime, name, request.body)
        return response.json(payload, status=code)

    return app
