"""Logging setup for nodeflow.

Plain text logs by default, one JSON object per line when structured
logging is enabled. Request and execution context (request id, workflow
id, node id) travels on each record under ``context``.
"""

import logging
import sys
import json
import traceback
from contextvars import ContextVar
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Optional, Dict, Any
from pathlib import Path


DEFAULT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s%(context_suffix)s: %(message)s"

# Loggers that follow the configured level instead of the root default
APPLICATION_LOGGERS = ("nodeflow.core", "nodeflow.api", "nodeflow.executors", "nodeflow.storage")

QUIET_LOGGERS = {
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
    "asyncio": logging.WARNING,
}


class JsonFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}:{record.lineno}",
        }
        entry.update(getattr(record, "context", {}))

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, _ = record.exc_info
            entry["exc"] = {
                "type": exc_type.__name__,
                "value": str(exc_value),
                "trace": "".join(traceback.format_exception(*record.exc_info)),
            }

        return json.dumps(entry, default=str)


# Per request or task; copied into threadpool workers with the rest of the context
_ambient_context: ContextVar[Dict[str, Any]] = ContextVar("nodeflow_log_context", default={})


class ContextFilter(logging.Filter):
    """Merge ambient request context into every record passing a handler.

    Fields passed explicitly through ``log_with_context`` win over the
    ambient ones.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        merged = dict(_ambient_context.get())
        merged.update(getattr(record, "context", {}))
        record.context = merged
        record.context_suffix = "".join(
            f" [{key}={merged[key]}]" for key in ("workflow_id", "node_id") if key in merged
        )
        return True


_context_filter = ContextFilter()


def _attach(handler: logging.Handler, formatter: logging.Formatter, root: logging.Logger):
    handler.setFormatter(formatter)
    handler.addFilter(_context_filter)
    root.addHandler(handler)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    structured: bool = False,
    max_size: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    stream: Optional[Any] = None
) -> logging.Logger:
    """
    Install console and optional rotating file handlers on the root logger.

    Args:
        level: Level name applied to the root and application loggers
        log_file: File to write to in addition to the console
        log_format: Format string for plain text output
        structured: Emit JSON lines instead of plain text
        max_size: Bytes before the log file rotates
        backup_count: Rotated files to keep
        stream: Console stream, standard output when omitted

    Returns:
        The root logger
    """
    numeric_level = getattr(logging, level.upper())
    if structured:
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(fmt=log_format or DEFAULT_FORMAT, datefmt="%H:%M:%S")

    root = logging.getLogger()
    root.setLevel(numeric_level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    _attach(logging.StreamHandler(stream or sys.stdout), formatter, root)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        _attach(
            RotatingFileHandler(log_file, maxBytes=max_size, backupCount=backup_count),
            formatter,
            root
        )

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)
    for name in APPLICATION_LOGGERS:
        logging.getLogger(name).setLevel(numeric_level)

    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_logging_context(**fields):
    """Attach fields to every record until ``clear_logging_context``."""
    _ambient_context.set({**_ambient_context.get(), **fields})


def clear_logging_context():
    _ambient_context.set({})


def log_with_context(logger: logging.Logger, level: int, message: str, **context):
    """Log ``message`` carrying per-call fields such as workflow_id or node_id."""
    logger.log(level, message, extra={"context": context})
