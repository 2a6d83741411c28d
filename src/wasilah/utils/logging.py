"""Structured logging for Wasilah exports, built on structlog.

Events are named ``area.event`` (``export.job_completed``,
``history.persist_failed``) and carry key/value context. While a job runs,
its id is bound with :func:`execution_context` and lands on every event
emitted from that thread or task.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

import structlog
from structlog.contextvars import (
    bind_contextvars,
    bound_contextvars,
    merge_contextvars,
    unbind_contextvars,
)

from wasilah.config.settings import Settings

_MAX_TEXT = 500

# Chatty libraries the export engine drives
_QUIET_LOGGERS = ("transitions", "openpyxl", "reportlab")


def _encode_value(obj: Any) -> Any:
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, Path):
        return str(obj)
    if hasattr(obj, "to_wire"):
        return obj.to_wire()
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    return repr(obj)


def _dumps(obj: Any, **kwargs: Any) -> str:
    return json.dumps(obj, default=_encode_value, ensure_ascii=False, **kwargs)


def _shorten_payloads(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Never log artifact bytes or whole record payloads."""
    for key, value in event_dict.items():
        if isinstance(value, (bytes, bytearray)):
            event_dict[key] = f"<{len(value)} bytes>"
        elif isinstance(value, str) and len(value) > _MAX_TEXT:
            event_dict[key] = f"{value[:_MAX_TEXT]}... ({len(value)} chars)"
        elif isinstance(value, (list, tuple)) and len(value) > 20:
            event_dict[key] = f"<{len(value)} items>"
    return event_dict


def _context_values(job_id: str | None, extra: dict[str, Any]) -> dict[str, Any]:
    values = dict(extra)
    if job_id:
        values["job_id"] = job_id
    return values


def set_execution_context(job_id: str | None = None, **extra: Any) -> None:
    """Bind ``job_id`` (and any extra keys) to every following log event."""
    bind_contextvars(**_context_values(job_id, extra))


def clear_execution_context(*keys: str) -> None:
    """Unbind ``keys`` (``job_id`` by default); other bound context is kept."""
    unbind_contextvars(*(keys or ("job_id",)))


@contextmanager
def execution_context(job_id: str | None = None, **extra: Any) -> Iterator[None]:
    """Bind context for the block, then restore whatever was bound before."""
    with bound_contextvars(**_context_values(job_id, extra)):
        yield


def configure_logging(
    *,
    level: str = "info",
    output_format: str = "text",
    color: bool = True,
    log_file: Path | None = None,
) -> None:
    """Route structlog through stdlib logging to stderr (and optionally a file).

    ``output_format="json"`` renders one JSON object per line; anything else
    uses structlog's console renderer.
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    if output_format.lower() == "json":
        renderer: Any = structlog.processors.JSONRenderer(serializer=_dumps, sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=color)

    structlog.configure(
        processors=[
            merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _shorten_payloads,  # type: ignore[list-item]
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    root = logging.getLogger()
    root.handlers = []
    root.setLevel(log_level)
    for handler in handlers:
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def configure_from_settings(settings: Settings, *, log_file: Path | None = None) -> None:
    general = settings.general
    configure_logging(
        level=general.verbosity,
        output_format=general.output_format,
        color=general.color_enabled,
        log_file=log_file,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name) if name else structlog.get_logger()


@contextmanager
def timed_operation(
    operation: str,
    *,
    logger: structlog.stdlib.BoundLogger | None = None,
    level: str = "info",
    **context: Any,
) -> Iterator[dict[str, Any]]:
    """Log ``operation`` with ``duration_ms`` and a completed/failed status.

    The yielded dict is logged with the event, so callers can add fields
    discovered while the block runs. Exceptions propagate unchanged.
    """
    log = logger or get_logger()
    started = time.perf_counter()
    status = "failed"
    try:
        yield context
        status = "completed"
    finally:
        getattr(log, level)(
            operation,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
            status=status,
            **context,
        )
