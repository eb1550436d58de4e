"""
VPSPlane Logging
================

Provider adapters and the cache log with ``extra={"provider": ...}``
style context. Both formats carry that context: JSON lines put each
field at the top level, text lines append ``key=value`` pairs.

Output goes to stderr so CLI results on stdout stay machine-readable.
"""

from datetime import datetime, timezone
from typing import Dict, Iterable
import json
import logging
import sys

CONTEXT_FIELDS = ("provider", "provider_id", "resource_type", "instance_id", "error_code")

# Third-party loggers that log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore")


def record_context(record: logging.LogRecord, fields: Iterable[str] = CONTEXT_FIELDS) -> Dict[str, object]:
    return {
        key: getattr(record, key)
        for key in fields
        if getattr(record, key, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record, stamped with the record's own UTC time."""

    def __init__(self, fields: Iterable[str] = CONTEXT_FIELDS):
        super().__init__()
        self.fields = tuple(fields)

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry = {
            "timestamp": created.strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(record_context(record, self.fields))
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ContextTextFormatter(logging.Formatter):
    """Plain text with provider context appended."""

    def __init__(self, fields: Iterable[str] = CONTEXT_FIELDS):
        super().__init__(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self.fields = tuple(fields)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = record_context(record, self.fields)
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        # Keep any traceback below the context
        head, sep, tail = line.partition("\n")
        return f"{head} [{pairs}]{sep}{tail}"


FORMATTERS = {
    "json": JSONFormatter,
    "text": ContextTextFormatter,
}


def configure_logging(level: str = "INFO", fmt: str = "json") -> logging.Handler:
    """
    Install a single stderr handler on the root logger.

    Args:
        level: Level name; unknown names fall back to INFO
        fmt: "json" or "text"

    Returns:
        The installed handler.
    """
    try:
        formatter = FORMATTERS[fmt.lower()]()
    except KeyError:
        raise ValueError(f"Unknown log format '{fmt}', expected one of {sorted(FORMATTERS)}")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers[:] = [handler]

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler
