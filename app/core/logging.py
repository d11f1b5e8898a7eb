"""Logging setup for the gateway.

One stdout handler on the root logger. Lines are either human-readable or, with
``LOG_JSON=true``, one JSON object per line carrying the request id and the
provider an entry is about.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from app.core.config import settings

# Record attributes passed via ``extra=`` that end up as top-level JSON keys
CONTEXT_FIELDS = ("request_id", "provider")

# Upstream HTTP clients log every call at INFO, including identity and quota lookups
_QUIET_LOGGERS = ("httpx", "httpcore")

HUMAN_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def _build_formatter(json_output: bool) -> logging.Formatter:
    if json_output:
        return JSONFormatter()
    return logging.Formatter(HUMAN_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


def setup_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """Install the stdout handler; arguments default to the LOG_* settings."""
    level_no = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
    if json_output is None:
        json_output = settings.log_json

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_build_formatter(json_output))

    root = logging.getLogger()
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level_no)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level_no, logging.WARNING))
