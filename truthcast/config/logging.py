"""Loguru configuration for configuration-level and heuristic components.

The async pipeline logs through structlog (see truthcast.utils.logging);
extractor, credibility scoring, providers, the Gemini client and the CLI
log through the component-bound loguru logger configured here.
"""

import logging
import sys
from typing import Optional

from loguru import logger

from truthcast.config.settings import settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> | <level>{message}</level>"
)

# Chatty client libraries that log every request at INFO
QUIET_LIBRARIES = ("httpx", "httpcore", "google.generativeai")


def configure_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Configure loguru sinks.

    Args:
        level: Minimum level; LOG_LEVEL from settings if None
        log_format: "console" for colourised output on a TTY, anything else
            for JSON lines on stdout; LOG_FORMAT from settings if None
    """
    level = (level or settings.log_level).upper()
    log_format = (log_format or settings.log_format).lower()

    logger.remove()
    logger.configure(extra={"component": "truthcast"})

    if sys.stderr.isatty() and log_format == "console":
        logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)
    else:
        logger.add(
            sys.stdout,
            format="{message}",
            level=level,
            serialize=True,
            diagnose=False,  # no variable inspection in shipped logs
        )

    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(component: str):
    """
    Get a logger bound to a component name.

    Example:
        >>> log = get_logger("verification.extractor")
        >>> log.info("Extracting claims")
    """
    return logger.bind(component=component)


configure_logging()

__all__ = ["logger", "get_logger", "configure_logging"]
