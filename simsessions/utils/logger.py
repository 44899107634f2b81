"""
Structured Logging Module
=========================

Provides structured logging using structlog with JSON output for production
and colored console output for development.

Usage:
    from simsessions.utils.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Session started", session_id="abc", udid="...")
"""

import logging
import sys
from typing import Any, Optional, TextIO

import structlog
from structlog.types import Processor

from simsessions import __version__


def add_app_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """
    Add application context to log entries.

    Args:
        logger: The wrapped logger object.
        method_name: The name of the log method called.
        event_dict: The event dictionary to process.

    Returns:
        The modified event dictionary.
    """
    event_dict["app"] = "simsessions"
    event_dict["version"] = __version__
    return event_dict


def setup_logging(
    level: str = "INFO",
    json_logs: bool = False,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Configure structured logging for the application.

    Sets up structlog with appropriate processors based on the environment:
    - Development: Colored console output with pretty printing
    - Production: JSON output for log aggregation

    This should be called once at application startup.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
        json_logs: Emit JSON lines instead of console output.
        stream: Output stream. Defaults to stdout; the stdio transport
            passes stderr because stdout carries protocol lines.
    """
    stream = stream or sys.stdout
    log_level = getattr(logging, level.upper(), logging.INFO)

    # Shared processors for all environments
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        add_app_context,
    ]

    if not json_logs:
        # Development: Pretty console output
        processors: list[Processor] = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(
                colors=stream.isatty(),
                exception_formatter=structlog.dev.rich_traceback,
            ),
        ]
    else:
        # Production: JSON output
        processors = [
            *shared_processors,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )

    # Also configure standard library logging for third-party libs
    logging.basicConfig(
        format="%(message)s",
        stream=stream,
        level=log_level,
    )

    # Reduce noise from common libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: The name for the logger, typically __name__.

    Returns:
        A bound structlog logger instance.
    """
    return structlog.get_logger(name)


class LogContext:
    """
    Context manager for adding temporary context to logs.

    Usage:
        with LogContext(session_id="abc123", operation="ui_tap"):
            logger.info("Processing")  # Will include session_id and operation
    """

    def __init__(self, **kwargs: Any) -> None:
        """
        Initialize log context.

        Args:
            **kwargs: Key-value pairs to add to log context.
        """
        self.context = {k: v for k, v in kwargs.items() if v is not None}

    def __enter__(self) -> "LogContext":
        """Enter the context, binding variables."""
        structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit the context, unbinding variables."""
        structlog.contextvars.unbind_contextvars(*self.context.keys())
