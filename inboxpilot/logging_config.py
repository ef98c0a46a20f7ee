"""JSON logging for InboxPilot API.

Tenant and pipeline fields found in a record's ``context`` are lifted to the
top level so log queries can filter on them directly. Context keys that look
like credentials are masked before serialization.
"""

import json
import logging
import sys
from datetime import datetime, timezone

SERVICE_NAME = "inboxpilot-api"
PROMOTED_FIELDS = ("business_id", "channel", "conversation_id", "stage")
SECRET_MARKERS = ("token", "secret", "api_key", "authorization")
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def _mask_secrets(context: dict) -> dict:
    masked = {}
    for key, value in context.items():
        if any(marker in str(key).lower() for marker in SECRET_MARKERS):
            masked[key] = "***"
        elif isinstance(value, dict):
            masked[key] = _mask_secrets(value)
        else:
            masked[key] = value
    return masked


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if isinstance(context, dict) and context:
            context = _mask_secrets(context)
            for name in PROMOTED_FIELDS:
                if context.get(name) is not None:
                    entry[name] = context.pop(name)
            if context:
                entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Route every logger through a single stdout JSON handler."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for existing in list(root.handlers):
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"inboxpilot.{name}")
