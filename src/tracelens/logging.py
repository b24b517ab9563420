"""Structured logging configuration for tracelens."""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import TYPE_CHECKING, TextIO

import structlog

if TYPE_CHECKING:
    from structlog.typing import EventDict, WrappedLogger

# Context variable for test run ID propagation across async calls
test_run_id_ctx: ContextVar[str] = ContextVar("test_run_id", default="")


def add_test_run_id(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add test_run_id to log event if set in context."""
    test_run_id = test_run_id_ctx.get()
    if test_run_id:
        event_dict["test_run_id"] = test_run_id
    return event_dict


def mask_api_key(api_key: str | None) -> str:
    """Return a loggable form of an API key that never reveals the full value."""
    if not api_key:
        return "<unset>"
    if len(api_key) <= 8:
        return "****"
    return f"{api_key[:4]}...{api_key[-4:]}"


def configure_logging(
    log_level: str = "INFO",
    json_format: bool = True,
    stream: TextIO | None = None,
) -> None:
    """
    Configure structured logging with structlog.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: If True, output JSON format; otherwise, console format.
        stream: Output stream (defaults to sys.stderr).
    """
    if stream is None:
        stream = sys.stderr

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
        add_test_run_id,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=False,  # Disable caching for tests
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically module name).

    Returns:
        Lazy structlog logger; configuration is resolved on first use.
    """
    return structlog.get_logger(name, logger_name=name)
