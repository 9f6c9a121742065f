"""JSON logging for the token authority, correlated by request id.

Every record is one JSON object on stdout. Anything shaped like a JWT is
masked before it is written, so a bearer value interpolated into a message
by mistake never reaches the log sink.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import IO, Any
from uuid import uuid4

from flask import Flask, has_request_context, request

REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_HEADERS = ("X-Request-ID", "X-Correlation-ID")
MAX_REQUEST_ID_LENGTH = 128
# WSGI environ key; the environ lives exactly as long as one request
ENVIRON_KEY = "authority.request_id"

# ``extra=`` keys copied into the JSON payload when present on a record
EXTRA_KEYS = ("endpoint", "elapsed_ms", "key_id", "user_id", "error_code")

_JWT_LIKE = re.compile(r"\beyJ[\w-]*\.[\w-]+\.[\w-]*")
REDACTED = "[redacted-token]"


def redact_tokens(text: str) -> str:
    """Replace every JWT-shaped substring of ``text`` with :data:`REDACTED`."""
    return _JWT_LIKE.sub(REDACTED, text)


class JSONFormatter(logging.Formatter):
    """Render log records as JSON objects with token-shaped values masked."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "name": record.name,
            "message": redact_tokens(record.getMessage()),
            "request_id": getattr(record, "request_id", None),
        }
        for key in EXTRA_KEYS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if record.exc_info:
            payload["exc_info"] = redact_tokens(self.formatException(record.exc_info))
        return json.dumps(payload, default=str)


class RequestIdFilter(logging.Filter):
    """Stamp ``request_id`` on every record (``None`` outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - trivial
        record.request_id = ensure_request_id() if has_request_context() else None
        return True


def ensure_request_id() -> str:
    """Return the current request id, adopting a correlation header or minting one.

    The id is kept in the request's WSGI environ rather than on ``flask.g``,
    which is shared by every request served under one long-lived app context.
    Incoming ids longer than :data:`MAX_REQUEST_ID_LENGTH` are ignored.
    """
    if not has_request_context():
        return str(uuid4())
    current = request.environ.get(ENVIRON_KEY)
    if current:
        return current
    for header in CORRELATION_HEADERS:
        value = (request.headers.get(header) or "").strip()
        if value and len(value) <= MAX_REQUEST_ID_LENGTH:
            current = value
            break
    else:
        current = str(uuid4())
    request.environ[ENVIRON_KEY] = current
    return current


def configure_logging(level: str | int = "INFO", *, stream: IO[str] | None = None) -> None:
    """Install a single JSON handler on the root logger.

    Parameters
    ----------
    level: str | int
        Root level, as a name (``"warning"`` is accepted) or a number.
    stream: IO[str] | None
        Destination; ``sys.stdout`` by default.
    """
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(RequestIdFilter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        level = resolved if isinstance(resolved, int) else logging.INFO
    root.setLevel(level)


def init_app(app: Flask) -> None:
    """Seed the request id for each request and echo it on the response."""

    app.logger.addFilter(RequestIdFilter())

    @app.before_request
    def _seed_request_id() -> None:  # pragma: no cover - integration glue
        ensure_request_id()

    @app.after_request
    def _inject_response_header(response):  # pragma: no cover - integration glue
        response.headers.setdefault(REQUEST_ID_HEADER, ensure_request_id())
        return response


__all__ = [
    "JSONFormatter",
    "configure_logging",
    "ensure_request_id",
    "init_app",
    "redact_tokens",
]
