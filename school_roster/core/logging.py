"""
Structured JSON logging.

Every log line is one JSON object on stdout with a channel name
(http, auth, students, attendance, fees, db) and the id of the request
that produced it.
"""

import json
import logging
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone

from school_roster.core.config import settings

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

CHANNELS = ("http", "auth", "students", "attendance", "fees", "db")


class StructuredJsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "message": record.getMessage(),
            "channel": getattr(record, "channel", record.name.split(".")[-1]),
            "context": {
                "request_id": request_id_var.get(""),
                **(getattr(record, "context", {}) or {}),
            },
            "extra": getattr(record, "extra_data", {}) or {},
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging() -> logging.Logger:
    level = getattr(logging, settings.LOG_LEVEL, logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredJsonFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]

    for channel in CHANNELS:
        logging.getLogger(f"school_roster.{channel}").setLevel(level)
    return root


def get_logger(channel: str) -> logging.Logger:
    return logging.getLogger(f"school_roster.{channel}")


def log_with_context(logger: logging.Logger, level: str, message: str,
                     context: dict | None = None, extra_data: dict | None = None,
                     exc_info=None) -> None:
    """
    Emit a log entry carrying business context (student_id, username...)
    and extra metadata (duration_ms, status_code...).
    """
    logger.log(
        getattr(logging, level.upper(), logging.INFO),
        message,
        exc_info=exc_info,
        extra={
            "context": context or {},
            "extra_data": extra_data or {},
            "channel": logger.name.split(".")[-1],
        },
    )


def generate_request_id() -> str:
    return str(uuid.uuid4())
