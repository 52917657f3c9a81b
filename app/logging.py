from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, Dict

from flask import Flask, g, request

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Attributes every LogRecord carries; anything else was passed through ``extra``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

# Libraries that log every scheduler tick or request at info
QUIET_LOGGERS = ("apscheduler", "werkzeug")


class JsonFormatter(logging.Formatter):
    """One JSON object per line, with ``extra`` fields and the scrape request ID merged in."""

    default_time_format = "%Y-%m-%dT%H:%M:%S"
    default_msec_format = "%s.%03dZ"

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and not key.startswith("_"):
                payload[key] = value

        if "request_id" not in payload:
            request_id = current_request_id()
            if request_id:
                payload["request_id"] = request_id

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def build_handler(fmt: str = "json") -> logging.Handler:
    handler = logging.StreamHandler()
    formatter = logging.Formatter(TEXT_FORMAT) if fmt == "text" else JsonFormatter()
    handler.setFormatter(formatter)
    return handler


def configure_root_logging(level: str = "info", fmt: str = "json") -> logging.Handler:
    """Route every logger through a single handler on the root logger."""
    handler = build_handler(fmt)
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler


def init_logging(app: Flask, level: str = "info", fmt: str = "json") -> None:
    """Attach the exporter's handler to the Flask logger and tag scrapes with a request ID."""
    app.logger.handlers.clear()
    app.logger.addHandler(build_handler(fmt))
    app.logger.setLevel(level.upper())
    app.logger.propagate = False

    @app.before_request
    def _start_scrape() -> None:
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        g.request_started = time.monotonic()

    @app.after_request
    def _finish_scrape(response):
        response.headers["X-Request-ID"] = g.request_id
        app.logger.debug(
            f"{request.method} {request.path} {response.status_code}",
            extra={"duration_ms": round((time.monotonic() - g.request_started) * 1000, 2)},
        )
        return response


def current_request_id() -> str | None:
    """Request ID of the scrape being served, if any."""
    try:
        return getattr(g, "request_id", None)
    except RuntimeError:
        return None
