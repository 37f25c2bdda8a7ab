"""Structured logging for the lifecycle engine.

Every operation runs under a correlation ID that ties its log lines to the
audit events it writes. Callers that already have one (a request ID, a CLI
run) bind it once with ``correlation_context``; orchestrators pick it up
through ``resolve_correlation_id`` and every log line emitted inside the
block carries it via structlog's contextvars.

Usage:
    setup_logging("INFO", json_output=True, service_name="field-service")

    with correlation_context(request_id):
        await services.visits.transition_visit_status(...)
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator
from uuid import uuid4

import structlog

CORRELATION_KEY = "correlation_id"


def new_correlation_id() -> str:
    """Fresh correlation ID for an operation started without one."""
    return uuid4().hex


def current_correlation_id() -> str | None:
    """Correlation ID bound to the current context, if any."""
    return structlog.contextvars.get_contextvars().get(CORRELATION_KEY)


def resolve_correlation_id(correlation_id: str | None = None) -> str:
    """Explicit ID, else the context-bound one, else a fresh one."""
    return correlation_id or current_correlation_id() or new_correlation_id()


@contextmanager
def correlation_context(correlation_id: str | None = None) -> Iterator[str]:
    """Bind a correlation ID to every log line and operation in the block.

    Yields:
        The bound correlation ID (generated when none is given)
    """
    correlation_id = correlation_id or new_correlation_id()
    with structlog.contextvars.bound_contextvars(**{CORRELATION_KEY: correlation_id}):
        yield correlation_id


def _add_service_name(service_name: str):
    def processor(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict

    return processor


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    service_name: str | None = None,
) -> None:
    """Configure structlog for the CLI and embedding applications.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: JSON lines for log shipping; colored console otherwise
        service_name: Added as ``service`` to every entry
    """
    log_level = getattr(logging, level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    processors: list[Any] = [
        # Context-bound correlation IDs land on every entry
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if service_name:
        processors.insert(0, _add_service_name(service_name))

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(exception_formatter=structlog.dev.plain_traceback)
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance (typically ``get_logger(__name__)``)."""
    return structlog.get_logger(name)
