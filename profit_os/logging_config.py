"""
Logging setup for the app and scripts.

Engine calls attach report context through ``extra=``; both formatters
render those fields so a log line can be traced back to the month and
policy that produced it.
"""
import logging
import json
import sys
from datetime import datetime, timezone


# Extra attributes the engine, loader and rate fetcher attach to records
CONTEXT_FIELDS = ("period", "cost_source", "share_mode", "rates_source", "staff_count", "duration_ms")


def record_context(record: logging.LogRecord) -> dict:
    """Context fields present on a record, in CONTEXT_FIELDS order."""
    return {name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, context fields at the top level."""
    def format(self, record):
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_entry.update(record_context(record))
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


class ContextFormatter(logging.Formatter):
    """Plain text with context appended as key=value pairs."""
    def __init__(self):
        super().__init__("%(asctime)s [%(name)s] %(levelname)s: %(message)s")

    def format(self, record):
        line = super().format(record)
        context = record_context(record)
        if context:
            line += " | " + " ".join(f"{k}={v}" for k, v in context.items())
        return line


def setup_logging(level: str = "INFO", json_output: bool = False):
    """Route all loggers to stdout with the chosen formatter."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_output else ContextFormatter())
    root.handlers = [handler]

    for name in ["urllib3", "requests", "streamlit"]:
        logging.getLogger(name).setLevel(logging.WARNING)
