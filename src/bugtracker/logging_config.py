"""Structured logging for the bug tracker service.

Every record carries timestamp, level, logger name and message. Extra fields
(bug_id, error_code, path, status) are surfaced when present. JSON output is
meant for production, the text format for local development.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

_EXTRA_FIELDS = ("bug_id", "error_code", "path", "status", "count")


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


class _BugTrackerHandler(logging.StreamHandler):
    """Marker type so repeated setup calls replace rather than stack handlers."""


# PUBLIC_INTERFACE
def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Configure root logging for the application."""
    root = logging.getLogger()
    for existing in list(root.handlers):
        if isinstance(existing, _BugTrackerHandler):
            root.removeHandler(existing)

    handler = _BugTrackerHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s - %(message)s",
        ))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
