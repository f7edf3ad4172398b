"""callgate — Structured logging configuration.

Uses structlog for structured, levelled logging with consistent key names
across all components.  All log entries include:
    - timestamp (ISO-8601)
    - level
    - logger (Python logger name)
    - method / caller (bound via context variables during an evaluation)
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import Any, TextIO

import structlog
from structlog.types import EventDict, WrappedLogger

# Context variables, automatically injected into log records when set.
_ctx_method: ContextVar[str | None] = ContextVar("method", default=None)
_ctx_caller: ContextVar[str | None] = ContextVar("caller", default=None)


def bind_call_context(method: str | None = None, caller: str | None = None) -> None:
    """Bind the call being evaluated to the current thread / async task."""
    if method is not None:
        _ctx_method.set(method)
    if caller is not None:
        _ctx_caller.set(caller)


def clear_call_context() -> None:
    _ctx_method.set(None)
    _ctx_caller.set(None)


# ---------------------------------------------------------------------------
# Custom processors
# ---------------------------------------------------------------------------


def _inject_context_vars(
    _logger: WrappedLogger, _method: str, event_dict: EventDict
) -> EventDict:
    """Add ContextVar values to every log record."""
    if (method := _ctx_method.get()) is not None:
        event_dict.setdefault("method", method)
    if (caller := _ctx_caller.get()) is not None:
        event_dict.setdefault("caller", caller)
    return event_dict


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def configure_logging(
    level: str = "info",
    format: str = "console",
    log_file: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """Configure structlog and stdlib logging.

    Call once at host startup, before any log statements.

    Args:
        level:    One of debug, info, warning, error, critical.
        format:   ``"console"`` for human-readable output, ``"json"`` for
                  machine-readable structured logs.
        log_file: Optional path to write logs to in addition to *stream*.
        stream:   Console stream for log output; defaults to stdout.
                  Command-line tools pass stderr so stdout stays parseable.
    """
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        _inject_context_vars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if format == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=(stream or sys.stdout).isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handlers: list[logging.Handler] = []

    stream_handler = logging.StreamHandler(stream or sys.stdout)
    stream_handler.setFormatter(formatter)
    handlers.append(stream_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.handlers = handlers
    root_logger.setLevel(level.upper())


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger for *name*.

    Usage::

        log = get_logger(__name__)
        log.info("method_registered", method="send_message", rule_count=2)
    """
    return structlog.get_logger(name)
