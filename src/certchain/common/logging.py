"""Structured JSON logging for Certchain."""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Any

AUDIT_LOGGER = "certchain.audit"


class JSONFormatter(logging.Formatter):
    """Format log records as JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        audit = getattr(record, "audit", None)
        if audit:
            log_entry["audit"] = audit
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Configure structured logging for the application."""
    root = logging.getLogger("certchain")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    if any(isinstance(h.formatter, JSONFormatter) for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)
    root.propagate = False


def audit_log(event: str, **fields: Any) -> None:
    """Emit one audit line (hash, timestamp, outcome) for a handler path."""
    logging.getLogger(AUDIT_LOGGER).info(event, extra={"audit": {"event": event, **fields}})
