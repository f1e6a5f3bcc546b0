"""Structured logging configuration with structlog.

Call ``configure_logging`` once at application startup. Services then use
``structlog.get_logger(__name__)`` and log event-style messages::

    log.info("case_created", case_id=case.id, actor=ctx.actor)

Case narrative text must never be passed to a logger; identifiers only.
"""
import logging
from typing import Optional

import structlog
from structlog.typing import Processor

from sentinel.config import settings


def _level(level_name: str) -> int:
    return getattr(logging, level_name.upper(), logging.INFO)


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """Configure structlog for JSON (production) or console (development) output."""
    level = level or settings.log_level
    fmt = fmt or settings.log_format

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if fmt == "console":
        final_processor: Processor = structlog.dev.ConsoleRenderer(colors=False)
    else:
        final_processor = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=shared_processors + [final_processor],
        wrapper_class=structlog.make_filtering_bound_logger(_level(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
