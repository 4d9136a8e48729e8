"""Structured logging configuration.

Every record is rendered as one JSON object per line. Task context passed via
``extra=`` (``topic``, ``task_id``, ...) is lifted to top-level keys so log
pipelines can filter a single topic or trace one task across poll, dispatch
and completion.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

# Keys that identify which task a record belongs to.
CONTEXT_FIELDS: tuple[str, ...] = ("topic", "task_id", "qualifier", "argument")

_RESERVED_LOG_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", logging.NOTSET, "", 0, "", None, None))
) | {"asctime", "message", "taskName"}


class JsonFormatter(logging.Formatter):
    """Render log records as JSON.

    Context fields are emitted next to ``message``; anything else passed
    through ``extra=`` is grouped under an ``extra`` key.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (record)
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
        }
        fields = record.__dict__
        for key in CONTEXT_FIELDS:
            if fields.get(key) is not None:
                payload[key] = fields[key]
        payload["message"] = record.getMessage()

        extra = {
            key: value
            for key, value in fields.items()
            if key not in _RESERVED_LOG_RECORD_ATTRS
            and key not in CONTEXT_FIELDS
            and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str) -> None:
    """Send JSON logs to stdout at `level`, replacing existing root handlers."""

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)
    root.setLevel(level.upper())

    # Polling produces a request per topic every few seconds.
    logging.getLogger("urllib3").setLevel(max(root.level, logging.WARNING))
