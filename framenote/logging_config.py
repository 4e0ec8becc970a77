from __future__ import annotations

import json
import logging
import os
import re
from datetime import UTC, datetime

from flask import g, has_request_context, request

LOG_FORMAT = (os.environ.get("FRAMENOTE_LOG_FORMAT", "json") or "json").strip().lower()
LOG_LEVEL = (os.environ.get("FRAMENOTE_LOG_LEVEL", "INFO") or "INFO").strip().upper()
REQUEST_ID_HEADER = (
    os.environ.get("FRAMENOTE_REQUEST_ID_HEADER", "X-Request-ID") or "X-Request-ID"
).strip()
REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{8,128}$")

PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s]: %(message)s"

REQUEST_FIELDS = ("request_id", "remote_addr", "method", "path")
# Attached by services through `extra=`.
REVIEW_FIELDS = ("project_id", "video_id", "comment_id")

# Chatty at INFO: urllib3 logs every pooled connection the API client opens.
QUIET_LOGGERS = ("urllib3", "asyncio")


def _request_fields() -> dict:
    if not has_request_context():
        return dict.fromkeys(REQUEST_FIELDS)
    return {
        "request_id": getattr(g, "request_id", None),
        "remote_addr": request.headers.get("X-Real-IP") or request.remote_addr,
        "method": request.method,
        "path": request.path,
    }


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        for name, value in _request_fields().items():
            setattr(record, name, value)
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in REQUEST_FIELDS + REVIEW_FIELDS:
            value = getattr(record, name, None)
            if value:
                payload[name] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=True)


def _build_formatter() -> logging.Formatter:
    if LOG_FORMAT == "json":
        return JsonFormatter()
    return logging.Formatter(PLAIN_FORMAT, defaults={"request_id": "-"})


def configure_logging(app) -> None:
    root = logging.getLogger()
    if not root.handlers:
        root.addHandler(logging.StreamHandler())
    formatter = _build_formatter()
    for handler in root.handlers:
        handler.setFormatter(formatter)
        if not any(isinstance(existing, RequestContextFilter) for existing in handler.filters):
            handler.addFilter(RequestContextFilter())
    root.setLevel(LOG_LEVEL)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    app.logger.handlers = root.handlers
    app.logger.setLevel(LOG_LEVEL)
    app.logger.propagate = False
