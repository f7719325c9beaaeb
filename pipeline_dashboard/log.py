"""Structured logging setup.

Every module logs through ``structlog.get_logger()``; this module wires the
processor chain once per process, rendering JSON lines in production and a
console format for local development.
"""

from __future__ import annotations

import logging
import sys
from typing import Tuple

import structlog

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def normalize_log_level(level: str | None) -> Tuple[str, bool]:
    """Normalize a log level name, reporting whether the input was invalid."""
    if not level:
        return ("INFO", True)

    normalized = level.strip().upper()
    if normalized == "WARN":
        normalized = "WARNING"
    if normalized in LOG_LEVELS:
        return (normalized, False)

    return ("INFO", True)


def configure_logging(level: str = "INFO", fmt: str = "json") -> str:
    """Configure structlog and the standard library root logger.

    Args:
        level: Log level name; unknown values fall back to INFO.
        fmt: ``json`` for JSON lines, anything else for the console renderer.

    Returns:
        The normalized level that was applied.
    """
    normalized, invalid = normalize_log_level(level)
    level_no = logging.getLevelName(normalized)

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level_no)

    if fmt.lower() == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level_no),
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=False,
    )

    if invalid:
        structlog.get_logger().warning("invalid_log_level", requested=level, applied=normalized)

    return normalized
