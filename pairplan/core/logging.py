"""Logfire setup and structured logging helpers.

Modules log through ``logging.getLogger(__name__)``. Once ``configure_logfire``
has run, those records are forwarded to Logfire next to the service spans::

    logger.warning("Malformed completion record", extra={"reason": reason})
    log_task_event(logger, "info", "Task assigned", task_id="7", actor_id="42")
"""

import logging

import logfire
from fastapi import FastAPI

from pairplan.core.config import settings


SERVICE_NAME = "pairplan"
SERVICE_VERSION = "0.1.0"


def configure_logfire() -> None:
    """Set up Logfire and route standard logging through it.

    Nothing leaves the process unless ``LOGFIRE_TOKEN`` is set.
    """
    logfire.configure(
        token=settings.logfire_token,
        service_name=SERVICE_NAME,
        service_version=SERVICE_VERSION,
        environment=settings.environment,
        send_to_logfire="if-token-present",
    )
    logging.basicConfig(handlers=[logfire.LogfireLoggingHandler()], level=logging.INFO)

    logging.getLogger(__name__).info("Logfire configured", extra={"environment": settings.environment})


def instrument_fastapi(app: FastAPI) -> None:
    """Trace every request except health probes."""
    logfire.instrument_fastapi(app, excluded_urls="/health")


def span(name: str, **attributes: object) -> logfire.LogfireSpan:
    """Open a span around a service operation.

    Usage:
        with span("task_service.complete_task", task_id=task_id):
            ...
    """
    return logfire.span(name, **attributes)


def log_task_event(
    logger: logging.Logger,
    level: str,
    message: str,
    *,
    task_id: str | None,
    actor_id: str | None = None,
    **extra: object,
) -> None:
    """Log a task event with the task and, when known, the acting user attached.

    Args:
        logger: Logger of the calling module
        level: "debug", "info", "warning" or "error"
        message: Event description
        task_id: Task the event concerns
        actor_id: User who triggered the event
        **extra: Further fields such as status or completed_count
    """
    context: dict[str, object] = {"task_id": task_id, **extra}
    if actor_id is not None:
        context["actor_id"] = actor_id
    getattr(logger, level.lower())(message, extra=context)
