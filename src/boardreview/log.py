"""structlog configuration shared by the CLI and the HTTP app."""

from __future__ import annotations

import logging

import structlog

_configured_level: int | None = None


def configure_logging(level_name: str = "INFO") -> None:
    """Configure structlog once per level; repeated calls are no-ops."""
    global _configured_level
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        level = logging.INFO
    if _configured_level == level:
        return
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=False,
    )
    _configured_level = level
