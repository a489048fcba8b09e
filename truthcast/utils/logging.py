"""Structured logging utilities using structlog for session context and tracing."""

import os
import sys
import uuid
from typing import Any, Optional

import structlog
from structlog.contextvars import merge_contextvars
from structlog.processors import JSONRenderer

# Development mode: TTY and LOG_FORMAT=console
IS_TTY = sys.stderr.isatty()
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").lower()
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def configure_structured_logging(
    level: Optional[str] = None,
    log_format: Optional[str] = None,
) -> None:
    """
    Configure structured logging with appropriate processors and renderers.

    Uses:
    - Console renderer for development (colorized, human-readable)
    - JSON renderer otherwise (structured, machine-readable)
    - Context binding for parent_work_id and correlation_id

    Args:
        level: Minimum level name; defaults to LOG_LEVEL from the environment
        log_format: "console" or "json"; defaults to LOG_FORMAT
    """
    level = (level or LOG_LEVEL).upper()
    log_format = (log_format or LOG_FORMAT).lower()

    processors = [
        merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if IS_TTY and log_format == "console":
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )
    else:
        processors.append(JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_structured_logger(
    name: str,
    parent_work_id: Optional[str] = None,
    **additional_context: Any,
) -> structlog.BoundLogger:
    """
    Get a structured logger with bound context.

    Args:
        name: Logger name (typically the component)
        parent_work_id: Optional ParentWork id to bind
        **additional_context: Additional context to bind

    Example:
        >>> logger = get_structured_logger("session", parent_work_id="work-abc")
        >>> logger.info("claim_verified", claim_id="claim-123", label="verified")
    """
    logger = structlog.get_logger(name).bind(component=name)
    if parent_work_id:
        logger = logger.bind(parent_work_id=parent_work_id)
    if additional_context:
        logger = logger.bind(**additional_context)
    return logger


def get_correlation_id() -> str:
    """
    Generate a correlation ID for tracing one session run across components.

    Example:
        >>> logger = get_structured_logger("session").bind(correlation_id=get_correlation_id())
    """
    return str(uuid.uuid4())
