"""
Structured logging for the inference gateway.

Each entry carries the service name and, while a request is being served,
the request id bound by the HTTP middleware. Key/value fields are attached
through ``extra={"_extra": {...}}`` and rendered under ``fields``.
Outputs to stdout for container log aggregation.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

_NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore")


def bind_request_id(request_id: str | None):
    """Bind a request id to the current context. Returns the reset token."""
    return request_id_var.set(request_id)


def get_request_id() -> str | None:
    return request_id_var.get()


class JSONFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self._service = service_name

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self._service,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = get_request_id()
        if request_id:
            entry["request_id"] = request_id

        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)

        extra = getattr(record, "_extra", None)
        if extra:
            entry["fields"] = extra

        return json.dumps(entry, default=str)


class PlainFormatter(logging.Formatter):
    """Human-readable variant used when LOG_FORMAT=text."""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        line = f"[{ts}] {record.levelname}: {record.getMessage()}"

        request_id = get_request_id()
        if request_id:
            line += f" [request_id={request_id}]"

        extra = getattr(record, "_extra", None)
        if extra:
            line += " " + json.dumps(extra, default=str)

        if record.exc_info and record.exc_info[1]:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(service_name: str, level: str | None = None, fmt: str | None = None) -> logging.Logger:
    """
    Configure the root logger for the service.

    Call once at startup (in the lifespan hook). Level and format default
    to the LOG_LEVEL and LOG_FORMAT environment variables.
    Returns the service-specific logger.
    """
    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    if level_name == "WARN":
        level_name = "WARNING"
    log_level = getattr(logging, level_name, logging.INFO)
    fmt_name = (fmt or os.environ.get("LOG_FORMAT", "json")).lower()

    handler = logging.StreamHandler(sys.stdout)
    if fmt_name == "text":
        handler.setFormatter(PlainFormatter())
    else:
        handler.setFormatter(JSONFormatter(service_name))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger = logging.getLogger(service_name)
    logger.info(
        "Logging initialized",
        extra={"_extra": {"level": level_name, "format": fmt_name}},
    )
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a child logger. Use for module-level logging."""
    return logging.getLogger(name)
