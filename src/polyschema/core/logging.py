"""
Structured logging for polyschema.

All modules log through structlog with snake_case event names and
key/value fields::

    logger = get_logger(__name__)
    logger.info("schema_composed", modules=["m1", "m2"], tables=3)

Nothing is configured at import time.  Applications (and the CLI) call
:func:`configure_logging` or :func:`configure_from_settings` once; the
output goes to stderr as JSON lines or as coloured console text.

Scoped fields (the script being run, the operation in progress) are bound
with :class:`LogContext` and appear on every event logged inside it.
"""

from __future__ import annotations

import logging
import sys
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

if TYPE_CHECKING:
    from polyschema.core.settings import OrmSettings

_COMPONENT = "polyschema"


def _add_component(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("component", _COMPONENT)
    return event_dict


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # Resolved per logger so a replaced sys.stderr (test runners) is honoured
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    component: str = "polyschema",
    add_timestamp: bool = True,
) -> None:
    """Configure structlog and the standard library root logger.

    Args:
        level: DEBUG, INFO, WARNING or ERROR
        json_format: True for JSON lines, False for console, None picks JSON
            unless stderr is a terminal
        component: Value of the ``component`` field on every event
        add_timestamp: Prefix events with an ISO timestamp
    """
    global _COMPONENT
    _COMPONENT = component

    if json_format is None:
        json_format = not sys.stderr.isatty()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        _add_component,
    ]
    if add_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    numeric_level = getattr(logging, level.upper())
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )

    # SQLAlchemy's engine echo and pool messages use the standard library
    logging.basicConfig(format="%(message)s", level=numeric_level)


def configure_from_settings(settings: OrmSettings) -> None:
    """Apply ``log_level`` and ``log_format`` from *settings*."""
    configure_logging(level=settings.log_level, json_format=settings.json_logs())


def get_logger(name: str | None = None) -> Any:
    """Return a structlog logger, usually ``get_logger(__name__)``.

    The name is bound as the ``logger`` field of every event.
    """
    if name is None:
        return structlog.get_logger()
    return structlog.get_logger().bind(logger=name)


def bind_context(**kwargs: Any) -> None:
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Bind fields for the duration of a ``with`` block.

    Example:
        with LogContext(script="000_init.sql"):
            logger.info("sql_batch_committed", statements=3)

    Fields already bound outside the block get their previous values back
    on exit.
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs
        self._bound: AbstractContextManager[None] | None = None

    def __enter__(self) -> LogContext:
        self._bound = structlog.contextvars.bound_contextvars(**self._context)
        self._bound.__enter__()
        return self

    def __exit__(self, *args: Any) -> None:
        if self._bound is not None:
            self._bound.__exit__(*args)
            self._bound = None


__all__ = [
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
