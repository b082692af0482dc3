"""Structured logging configuration using structlog.

Every logger is a structlog wrapper around the stdlib logger
``structpatch.<component>``.  The library never configures logging on
import: until an application calls ``setup_logging`` the stdlib defaults
apply, so engine debug and info events go nowhere.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import structlog

from .config import log_level_from_env

ROOT_LOGGER = "structpatch"


def setup_logging(level: Optional[str] = None) -> None:
    """Configure structlog for JSON output to stderr.

    With no explicit level, STRUCTPATCH_LOG_LEVEL decides (default "info").
    """
    if level is None:
        level = log_level_from_env()
    log_level = getattr(logging, level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    package_logger = logging.getLogger(ROOT_LOGGER)
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.setLevel(log_level)
    package_logger.propagate = False


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound with a component name."""
    stdlib_logger = logging.getLogger(f"{ROOT_LOGGER}.{component}")
    return structlog.wrap_logger(stdlib_logger, component=component)  # type: ignore[return-value]
