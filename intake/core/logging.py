"""Structured logging configuration using structlog.

Correlation ids (engagement, document, agent, request) live in context
variables so that every log line emitted while an event chain runs carries
them, including lines from detached tasks, which copy the context at
creation time.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

import orjson
import structlog
from structlog.types import Processor

from intake.core.config import settings

engagement_id_ctx: ContextVar[str | None] = ContextVar("engagement_id", default=None)
document_id_ctx: ContextVar[str | None] = ContextVar("document_id", default=None)
agent_ctx: ContextVar[str | None] = ContextVar("agent", default=None)
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

_CONTEXT_VARS: dict[str, ContextVar[str | None]] = {
    "engagement_id": engagement_id_ctx,
    "document_id": document_id_ctx,
    "agent": agent_ctx,
    "request_id": request_id_ctx,
}


@contextmanager
def log_context(**values: str | None) -> Iterator[None]:
    """Bind correlation ids for the duration of the block.

    Usage:
        with log_context(engagement_id=event.engagement_id, agent="assessment"):
            ...

    Raises:
        KeyError: If a name is not a known correlation id.
    """
    tokens = [(_CONTEXT_VARS[name], _CONTEXT_VARS[name].set(value)) for name, value in values.items()]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def _add_context_vars(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Copy bound correlation ids into the event without overriding explicit fields."""
    for name, var in _CONTEXT_VARS.items():
        value = var.get()
        if value:
            event_dict.setdefault(name, value)
    return event_dict


def _orjson_serializer(obj: Any, **kwargs: Any) -> str:
    return orjson.dumps(obj, default=str).decode("utf-8")


def _use_json() -> bool:
    log_format = settings.log_format.lower() if settings.log_format else None
    if log_format is not None:
        return log_format == "json"
    return settings.environment != "development"


def configure_logging() -> None:
    """Configure structlog for the application.

    Development mode: ConsoleRenderer with colors for readability.
    Otherwise, or with ``LOG_FORMAT=json``: JSON lines via orjson with the
    event under ``message``.
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        _add_context_vars,
    ]

    if _use_json():
        renderers: list[Processor] = [
            structlog.processors.EventRenamer("message"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(serializer=_orjson_serializer),
        ]
    else:
        renderers = [structlog.dev.ConsoleRenderer(colors=True)]

    structlog.configure(
        processors=[*shared_processors, *renderers],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.DEBUG if settings.debug else logging.INFO,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a configured structlog logger."""
    return structlog.get_logger(name)
