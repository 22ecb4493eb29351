"""pairplan - recurring task tracking for couples."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from pairplan.core.config import constants, settings
from pairplan.core.db_client import close_connection, init_db
from pairplan.core.errors import (
    InvalidTransitionError,
    InvariantViolationError,
    TaskPermissionError,
    classify_error_with_response,
)
from pairplan.core.logging import configure_logfire, instrument_fastapi
from pairplan.core.module_registry import get_modules, register_module
from pairplan.core.scheduler import start_scheduler, stop_scheduler
from pairplan.interface.task_router import router as task_router
from pairplan.modules.tasks import TasksModule


logger = logging.getLogger(__name__)


def register_modules() -> None:
    """Register every feature module once."""
    if "tasks" not in get_modules():
        register_module(TasksModule())


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Open storage and start module jobs; release both on shutdown."""
    configure_logfire()

    register_modules()
    await init_db()
    logger.info("Task storage ready", extra={"modules": sorted(get_modules())})

    if settings.enable_scheduler:
        start_scheduler()
    yield
    stop_scheduler()
    await close_connection()


app = FastAPI(
    title="pairplan",
    description="Recurring task tracking for couples",
    version="0.1.0",
    lifespan=lifespan,
)

instrument_fastapi(app)
app.include_router(task_router)


def _error_response(exc: Exception, status_code: int) -> JSONResponse:
    response = classify_error_with_response(exc)
    return JSONResponse(content={"error": response.model_dump(mode="json")}, status_code=status_code)


@app.exception_handler(InvalidTransitionError)
async def invalid_transition_handler(_request: Request, exc: InvalidTransitionError) -> JSONResponse:
    logger.info("Rejected transition", extra={"task_id": exc.task_id, "action": exc.action, "reason": exc.reason})
    return _error_response(exc, constants.HTTP_CONFLICT)


@app.exception_handler(InvariantViolationError)
async def invariant_violation_handler(_request: Request, exc: InvariantViolationError) -> JSONResponse:
    logger.warning("Write refused for inconsistent task", extra={"task_id": exc.task_id})
    return _error_response(exc, constants.HTTP_CONFLICT)


@app.exception_handler(TaskPermissionError)
async def permission_handler(_request: Request, exc: TaskPermissionError) -> JSONResponse:
    return _error_response(exc, constants.HTTP_FORBIDDEN)


@app.exception_handler(KeyError)
async def not_found_handler(_request: Request, exc: KeyError) -> JSONResponse:
    return _error_response(exc, constants.HTTP_NOT_FOUND)


@app.exception_handler(ValidationError)
async def form_validation_handler(_request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        content={"detail": exc.errors(include_url=False, include_context=False)},
        status_code=constants.HTTP_UNPROCESSABLE_ENTITY,
    )


@app.get("/health")
async def health_check() -> JSONResponse:
    """Liveness probe."""
    return JSONResponse(content={"status": "healthy"}, status_code=constants.HTTP_OK)
