"""Structured logging for the engine.

Every engine module logs through :class:`StructuredLogger`, which attaches
keyword fields to the record. The formatters here render those records
with the engine's own keys (evaluation id, score kind, user, score and
fail-safe flag) at the top level, so a fallback result can be filtered
from a genuine zero without parsing the message.

The package installs only a ``NullHandler``. A host process that wants
engine output calls :func:`configure_logging`, which attaches a handler
to the ``jitter_engine`` logger and leaves the root logger alone.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, TextIO

from jitter_engine.config import Settings, settings

# Context variable for evaluation ID - set by the storage edge per snapshot
evaluation_id_ctx: ContextVar[str | None] = ContextVar("evaluation_id", default=None)

ENGINE_LOGGER_NAME = "jitter_engine"

# Record fields rendered as top-level keys; everything else goes under "context"
ENGINE_FIELDS: tuple[str, ...] = ("kind", "user_id", "score", "fail_safe")


def engine_fields(record: logging.LogRecord) -> tuple[dict[str, Any], dict[str, Any]]:
    """Split a record's fields into engine keys and free-form context.

    The evaluation ID comes from :data:`evaluation_id_ctx` and is only
    present while an evaluation is running.
    """
    extra_fields = dict(getattr(record, "extra_fields", None) or {})
    promoted: dict[str, Any] = {}

    evaluation_id = evaluation_id_ctx.get()
    if evaluation_id:
        promoted["evaluation_id"] = evaluation_id
    for key in ENGINE_FIELDS:
        if key in extra_fields:
            promoted[key] = extra_fields.pop(key)
    return promoted, extra_fields


def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JsonFormatter(logging.Formatter):
    """Formats engine records as one JSON object per line.

    Keys: timestamp, level, service, logger, message, then any engine keys
    (evaluation_id, kind, user_id, score, fail_safe), then ``context`` for
    the remaining fields. Errors add ``exception`` and ``location``.
    """

    def __init__(self, service_name: str = "jitter-engine"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": _record_time(record).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
        }

        promoted, context = engine_fields(record)
        log_data.update(promoted)
        if context:
            log_data["context"] = context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if record.levelno >= logging.ERROR:
            log_data["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for development.

    Format: timestamp - service - level - [evaluation_id] - message
    kind=.. fail_safe=.. | context fields
    """

    def __init__(self, service_name: str = "jitter-engine"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        promoted, context = engine_fields(record)
        evaluation_id = promoted.pop("evaluation_id", "-")
        timestamp = _record_time(record).strftime("%Y-%m-%d %H:%M:%S")

        line = (
            f"{timestamp} - {self.service_name} - {record.levelname} - "
            f"[{evaluation_id}] - {record.getMessage()}"
        )
        if promoted:
            line += " " + " ".join(f"{k}={v}" for k, v in promoted.items())
        if context:
            line += " | " + " ".join(f"{k}={v}" for k, v in context.items())

        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


class _EngineHandler(logging.StreamHandler):
    """Stream handler installed by :func:`configure_logging`."""


def configure_logging(
    config: Settings | None = None,
    stream: TextIO | None = None,
) -> logging.Handler:
    """Attach a formatted handler to the ``jitter_engine`` logger.

    Uses ``log_format``, ``log_level`` and ``service_name`` from ``config``
    (the module settings by default). Calling it again replaces the handler
    it installed earlier. Engine records stop propagating to the root
    logger.

    Args:
        config: Settings to read; defaults to the module-level settings.
        stream: Output stream; defaults to stdout.

    Returns:
        The installed handler.
    """
    config = config or settings
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    engine_logger = logging.getLogger(ENGINE_LOGGER_NAME)
    for existing in list(engine_logger.handlers):
        if isinstance(existing, _EngineHandler):
            engine_logger.removeHandler(existing)

    handler = _EngineHandler(stream or sys.stdout)
    handler.setLevel(level)
    if config.log_format.lower() == "json":
        handler.setFormatter(JsonFormatter(service_name=config.service_name))
    else:
        handler.setFormatter(TextFormatter(service_name=config.service_name))

    engine_logger.addHandler(handler)
    engine_logger.setLevel(level)
    engine_logger.propagate = False
    return handler


class StructuredLogger:
    """Logger wrapper that supports structured extra fields."""

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, msg: str, extra_fields: dict[str, Any] | None = None):
        record_extra = {"extra_fields": extra_fields} if extra_fields else {}
        self._logger.log(level, msg, extra=record_extra)

    def is_enabled_for(self, level: int) -> bool:
        """Return True when a record at ``level`` would be handled."""
        return self._logger.isEnabledFor(level)

    def debug(self, msg: str, **extra_fields: Any) -> None:
        self._log(logging.DEBUG, msg, extra_fields or None)

    def info(self, msg: str, **extra_fields: Any) -> None:
        self._log(logging.INFO, msg, extra_fields or None)

    def warning(self, msg: str, **extra_fields: Any) -> None:
        self._log(logging.WARNING, msg, extra_fields or None)

    def exception(self, msg: str, **extra_fields: Any) -> None:
        """Log at ERROR with the active traceback attached."""
        record_extra = {"extra_fields": extra_fields} if extra_fields else {}
        self._logger.exception(msg, extra=record_extra)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger for an engine module (pass ``__name__``)."""
    return StructuredLogger(name)
