"""Logging for operation invocations.

Every host invocation runs inside ``log_context``, which tags each record
with the operation kind, its key and a short invocation id. Connector
failures are logged with ``extra=connector_error_fields(exc)`` so the error
code and HTTP status land on the record as fields instead of only in the
message text. Linear API keys and bearer tokens are masked before output.
"""

import json
import logging
import re
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Optional

from ..connectors.exceptions import ConnectorError, ConnectorTransportError

_operation_kind: ContextVar[Optional[str]] = ContextVar("operation_kind", default=None)
_operation_key: ContextVar[Optional[str]] = ContextVar("operation_key", default=None)
_invocation_id: ContextVar[Optional[str]] = ContextVar("invocation_id", default=None)

# Record attributes copied into the output when a caller passes them as extra
ERROR_FIELDS = ("error_code", "http_status", "upstream_status")

_SECRET_PATTERN = re.compile(r"(lin_(?:api|oauth)_)[A-Za-z0-9]+|(Bearer )\S+")


def set_log_context(
    operation_kind: Optional[str] = None,
    operation_key: Optional[str] = None,
    invocation_id: Optional[str] = None,
):
    """Set contextual logging fields for the current async context."""
    if operation_kind is not None:
        _operation_kind.set(operation_kind)
    if operation_key is not None:
        _operation_key.set(operation_key)
    if invocation_id is not None:
        _invocation_id.set(invocation_id)


def clear_log_context():
    _operation_kind.set(None)
    _operation_key.set(None)
    _invocation_id.set(None)


@contextmanager
def log_context(operation_kind: str, operation_key: str, invocation_id: str) -> Iterator[None]:
    """Scope the context fields to one invocation."""
    set_log_context(operation_kind, operation_key, invocation_id)
    try:
        yield
    finally:
        clear_log_context()


def connector_error_fields(exc: ConnectorError) -> Dict[str, Any]:
    """``extra`` for a log call about a failed invocation."""
    fields: Dict[str, Any] = {"error_code": exc.error_code, "http_status": exc.http_status}
    if isinstance(exc, ConnectorTransportError) and exc.status_code:
        fields["upstream_status"] = exc.status_code
    return fields


def redact(text: str) -> str:
    return _SECRET_PATTERN.sub(lambda m: (m.group(1) or m.group(2)) + "***", text)


def _context_fields(record: logging.LogRecord) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    for name, var in (
        ("kind", _operation_kind),
        ("operation", _operation_key),
        ("invocation_id", _invocation_id),
    ):
        value = var.get()
        if value:
            fields[name] = value
    for name in ERROR_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            fields[name] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, context and error fields at top level."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": redact(record.getMessage()),
        }
        log_entry.update(_context_fields(record))

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = redact(self.formatException(record.exc_info))

        return json.dumps(log_entry)


class HumanReadableFormatter(logging.Formatter):
    """Single-line format for development, e.g.
    ``[...] WARNING  linear_connect.api: failed [op=trigger.new_issue, code=auth_expired]``.
    """

    _short_names = {
        "operation": "op",
        "invocation_id": "inv",
        "error_code": "code",
        "http_status": "status",
        "upstream_status": "upstream",
    }

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            f"[{self.formatTime(record, self.datefmt)}]",
            f"{record.levelname:8s}",
            f"{record.name}:",
            redact(record.getMessage()),
        ]

        # kind is already the prefix of the operation label
        ctx_parts = [
            f"{self._short_names[name]}={value}"
            for name, value in _context_fields(record).items()
            if name != "kind"
        ]
        if ctx_parts:
            parts.append(f"[{', '.join(ctx_parts)}]")

        msg = " ".join(parts)

        if record.exc_info and record.exc_info[1]:
            msg += "\n" + redact(self.formatException(record.exc_info))

        return msg


def configure_logging(environment: str = "development", log_level: str = "INFO"):
    """Configure root logging.

    Args:
        environment: "production" for JSON output, anything else for human-readable.
        log_level: Logging level string (DEBUG, INFO, WARNING, ERROR).
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)

    if environment == "production":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(HumanReadableFormatter(
            datefmt="%Y-%m-%d %H:%M:%S"
        ))

    root_logger.addHandler(handler)

    # Request logs from httpx would repeat every GraphQL POST
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
