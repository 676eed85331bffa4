"""FastAPI application exposing the polling contract.

Clients poll ``GET /state`` and send mutations to ``POST /state`` as
``{"event": <name>, "data": {...}}``. Every successful mutation answers with the
full refreshed state so clients never have to merge anything themselves.
"""

from __future__ import annotations
from tracking import t

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from infrastructure.constants import AVERAGE_CYCLE_MINUTES, CYCLE_MODES, MAX_CYCLE_MINUTES, MIN_CYCLE_MINUTES
from infrastructure.settings import get_settings
from machines.errors import LaundryError
from machines.registry import parse_machine_type
from state.serializer import StateSerializer
from usage.history import student_summary
from webapp.bootstrap import LaundryDependencies, build_dependencies
from webapp.error_handler import ErrorHandler
from webapp.events import UnknownEvent
from webapp.payloads import StateEvent
from webapp.runtime import LifecycleManager


def create_app(
    dependencies: Optional[LaundryDependencies] = None,
    *,
    lifecycle: Optional[LifecycleManager] = None,
) -> FastAPI:
    """Build the API around ``dependencies`` (built from settings when omitted)."""
    t('webapp.app.create_app')
    deps = dependencies or build_dependencies(get_settings())
    manager = lifecycle or LifecycleManager(deps)
    logger = logging.getLogger('LaundryAPI')

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await manager.startup()
        try:
            yield
        finally:
            await manager.shutdown()

    app = FastAPI(title="Dorm Laundry Coordinator", lifespan=lifespan)
    app.state.dependencies = deps
    app.state.lifecycle = manager
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    ErrorHandler.install(app)

    @app.get("/state")
    async def get_state() -> Dict[str, Any]:
        t('webapp.app.get_state')
        return deps.registry.snapshot()

    @app.post("/state")
    async def post_state(request: Request):
        t('webapp.app.post_state')
        try:
            body = await request.json()
        except ValueError:
            return ErrorHandler.handle_laundry_error(UnknownEvent("Request body must be a JSON object"))
        if not isinstance(body, dict):
            return ErrorHandler.handle_laundry_error(UnknownEvent("Request body must be a JSON object"))

        try:
            envelope = StateEvent.model_validate(body)
        except ValidationError:
            return ErrorHandler.handle_laundry_error(UnknownEvent("Request body must contain 'event' and 'data'"))

        try:
            deps.events.dispatch(envelope.event, envelope.data)
        except LaundryError as exc:
            return ErrorHandler.handle_laundry_error(exc)
        except Exception as exc:
            return ErrorHandler.handle_unexpected_error(exc)

        logger.debug("Event %s applied", envelope.event)
        return {"success": True, "state": deps.registry.snapshot()}

    @app.get("/modes")
    async def get_modes() -> Dict[str, Any]:
        t('webapp.app.get_modes')
        return {
            "modes": [dict(mode) for mode in CYCLE_MODES],
            "minDuration": MIN_CYCLE_MINUTES,
            "maxDuration": MAX_CYCLE_MINUTES,
            "averageCycleMinutes": dict(AVERAGE_CYCLE_MINUTES),
        }

    @app.get("/waitlists/{machine_type}/{student_id}")
    async def get_waitlist_position(machine_type: str, student_id: str) -> Dict[str, Any]:
        t('webapp.app.get_waitlist_position')
        position, estimate = deps.waitlists.position_and_estimate(machine_type, student_id)
        return {
            "machineType": parse_machine_type(machine_type).value,
            "studentId": student_id,
            "position": position,
            "estimatedWaitMinutes": estimate,
        }

    @app.get("/students/{student_id}/usage")
    async def get_student_usage(student_id: str) -> Dict[str, Any]:
        t('webapp.app.get_student_usage')
        deps.registry.refresh()
        with deps.store.read() as state:
            records = [record for record in state.usage_history if record.student_id == student_id]
            summary = student_summary(records, student_id)
            summary["records"] = [StateSerializer.usage_to_payload(record) for record in records]
        return summary

    @app.get("/health")
    async def health() -> JSONResponse:
        t('webapp.app.health')
        ok = deps.store.last_save_ok
        return JSONResponse(
            status_code=200 if ok else 503,
            content={
                "status": "ok" if ok else "degraded",
                "persistence": "ok" if ok else "failing",
                "sweeper": "running" if deps.sweeper.running else "stopped",
                "metrics": manager.collect_metrics(),
            },
        )

    return app


__all__ = ['create_app']
