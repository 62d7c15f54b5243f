"""
SEOgen Receiver - Structured Logging

Production writes one JSON object per line; development writes colored
single lines. Import and request fields (request_id, canonical_key, job_id)
are carried by LogContext and attached to every record logged inside it.

The callback secret, license keys and signatures must never be written:
matching keys are replaced with "[REDACTED]" at any nesting depth.

Usage:
    from seogen_receiver.core.logging import LogContext

    with LogContext(canonical_key=key, job_id=job_id):
        logger.info("Import started")
"""

from __future__ import annotations

import json
import logging
import sys
import traceback
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Generator

_log_context: ContextVar[Dict[str, Any]] = ContextVar("seogen_log_context", default={})

# Context keys shown inline by the console formatter
CONSOLE_CONTEXT_KEYS = ("request_id", "canonical_key", "job_id")

# Record attributes copied into JSON output when passed via `extra=`
EXTRA_KEYS = (
    "request_id",
    "canonical_key",
    "job_id",
    "item_index",
    "content_id",
    "error_code",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "count",
    "dry_run",
)

REDACTED = "[REDACTED]"
SENSITIVE_KEY_FRAGMENTS = (
    "secret",
    "license_key",
    "signature",
    "api_key",
    "password",
    "token",
)


def current_log_context() -> Dict[str, Any]:
    return dict(_log_context.get())


@contextmanager
def LogContext(**fields: Any) -> Generator[None, None, None]:
    """Attach `fields` to every record logged inside the block; nesting merges."""
    token = _log_context.set({**_log_context.get(), **fields})
    try:
        yield
    finally:
        _log_context.reset(token)


# =============================================================================
# Redaction
# =============================================================================


def _is_sensitive(key: Any) -> bool:
    normalized = str(key).lower().replace("-", "_")
    return any(fragment in normalized for fragment in SENSITIVE_KEY_FRAGMENTS)


def redact_sensitive(data: Any, max_depth: int = 10) -> Any:
    """Return a copy of `data` with sensitive mapping values replaced."""
    if max_depth <= 0:
        return "[MAX_DEPTH_EXCEEDED]"
    if isinstance(data, dict):
        return {
            key: REDACTED if _is_sensitive(key) else redact_sensitive(value, max_depth - 1)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [redact_sensitive(value, max_depth - 1) for value in data]
    return data


# =============================================================================
# Formatters
# =============================================================================


class StructuredJsonFormatter(logging.Formatter):
    """
    One JSON object per record:

        {"timestamp": "...", "level": "INFO", "service": "seogen-receiver",
         "logger": "seogen_receiver.services.import_coordinator",
         "message": "Content created", "canonical_key": "plumbing|austin-tx",
         "content_id": 42}
    """

    def __init__(self, service_name: str = "seogen-receiver"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
            **current_log_context(),
        }
        for key in EXTRA_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }
        return json.dumps(redact_sensitive(entry), default=str, ensure_ascii=False)


class ColoredConsoleFormatter(logging.Formatter):
    """`HH:MM:SS.mmm LEVEL logger [request_id=.., canonical_key=..] message`"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        context = current_log_context()
        shown = ", ".join(
            f"{key}={context[key]}" for key in CONSOLE_CONTEXT_KEYS if key in context
        )
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        line = (
            f"{self.COLORS.get(record.levelname, '')}{stamp} {record.levelname:8}{self.RESET} "
            f"{record.name}{f' [{shown}]' if shown else ''} {record.getMessage()}"
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


# =============================================================================
# Setup
# =============================================================================


class _BelowWarning(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < logging.WARNING


def configure_structured_logging(
    level: str = "INFO",
    json_output: bool = True,
    service_name: str = "seogen-receiver",
) -> None:
    """
    Replace root handlers: DEBUG/INFO go to stdout, WARNING and above to stderr.

    Args:
        level: Root log level name
        json_output: JSON lines when True, colored console lines otherwise
        service_name: Value of the "service" field in JSON output
    """
    formatter: logging.Formatter = (
        StructuredJsonFormatter(service_name) if json_output else ColoredConsoleFormatter()
    )

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.addFilter(_BelowWarning())
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.WARNING)

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in (stdout_handler, stderr_handler):
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level.upper())
