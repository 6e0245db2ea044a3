"""Structured logging for ingress-manager.

Every record carries ``component``; records emitted during a pass also carry
``app`` as ``namespace/name``. The controller writes one JSON object per line
to stderr. One-shot CLI commands ask for ``fmt="console"`` instead.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

_FORMATS = ("json", "console")


def _renderer(fmt: str) -> Any:
    if fmt == "console":
        return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    return structlog.processors.JSONRenderer()


def setup_logging(level: str = "info", fmt: str = "json") -> None:
    """Configure structlog output on stderr.

    Args:
        level: Minimum level name (``debug``, ``info``, ``warning``, ``error``).
        fmt:   ``json`` for the controller, ``console`` for interactive use.
    """
    if fmt not in _FORMATS:
        raise ValueError(f"Invalid log format: {fmt}. Must be one of {_FORMATS}")
    log_level = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
        structlog.dev.set_exc_info,
    ]
    if fmt == "json":
        processors.append(structlog.processors.format_exc_info)
    processors.append(_renderer(fmt))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(component=component)  # type: ignore[return-value]
