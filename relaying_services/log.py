"""
Logging setup.

Verbosity is a numeric level from 0 (most verbose) to 5 (silent):

    0 debug, 1 log, 2 info, 3 warning, 4 error, 5 none
"""

import logging
from typing import Optional, Union

import structlog

logger = structlog.get_logger()

# "log" sits between debug and info
LOG = 15
NONE = logging.CRITICAL + 10

LOG_LEVELS = (logging.DEBUG, LOG, logging.INFO, logging.WARNING, logging.ERROR, NONE)
DEFAULT_LOG_LEVEL = 2


def resolve_log_level(raw: Optional[Union[int, str]]) -> int:
    """
    Map a 0-5 verbosity value to a stdlib logging level.

    Never raises: absent values use the default, invalid ones
    use the default and emit a warning.
    """
    if raw is None or raw == "":
        return LOG_LEVELS[DEFAULT_LOG_LEVEL]

    try:
        index = int(raw)
    except (TypeError, ValueError):
        index = -1

    if not 0 <= index < len(LOG_LEVELS):
        logger.warning("invalid_log_level", value=raw, default=DEFAULT_LOG_LEVEL)
        index = DEFAULT_LOG_LEVEL

    return LOG_LEVELS[index]


def configure_logging(raw_level: Optional[Union[int, str]] = None, json_logs: bool = False) -> int:
    """Configure structlog and return the effective logging level."""
    level = resolve_log_level(raw_level)
    renderer = (
        structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=False,
    )
    return level
