"""Logging configuration for the backpack service.

Two output formats:

  _ContainerFormatter: single-line, human-readable, for local dev.

  _JsonFormatter: one JSON object per line, for production log shipping
    (set LOG_JSON=true).  Context attached by the request middleware or by
    the upload pipeline (request_id, recipient, badge_hash, audit_event)
    becomes a top-level key, so a log search such as

      audit_event == "recipient_mismatch" AND recipient == "bob@example.com"

    works without regex.

AUDIT LOGGER
------------
Security-relevant rejections (a badge uploaded by someone it was not
issued to, a delete attempted by a non-owner) go to the dedicated
``backpack.audit`` logger.  Operators can route that logger to a separate
sink and keep it apart from issuer timeouts and other transient noise.
"""

from __future__ import annotations

import json
import logging
import sys

AUDIT_LOGGER_NAME = "backpack.audit"


class _ContainerFormatter(logging.Formatter):
    """Single-line formatter tuned for container stdout.

    - Always: ISO-8601 timestamp, level, logger name, message
    - WARNING+: appends [filename:lineno]
    - audit records: appends the audit_event tag
    """

    _BASE_FMT = "%(asctime)s %(levelname)-8s %(name)s  %(message)s"
    _LOC_SUFFIX = "  [%(filename)s:%(lineno)d]"

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        base = super().formatTime(record, datefmt)
        ms = int(record.msecs)
        # .NNN goes before the +0000 offset
        return f"{base[:-5]}.{ms:03d}{base[-5:]}"

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.WARNING:
            self._style._fmt = self._BASE_FMT + self._LOC_SUFFIX
        else:
            self._style._fmt = self._BASE_FMT
        output = super().format(record)
        audit_event = getattr(record, "audit_event", None)
        if audit_event:
            output = f"{output}  audit={audit_event}"
        return output


class _JsonFormatter(logging.Formatter):
    """JSON Lines formatter.

    Known context fields are lifted out of the LogRecord and emitted as
    top-level keys when present.
    """

    _CONTEXT_FIELDS = (
        "request_id",
        "method",
        "path",
        "status_code",
        "duration_ms",
        "recipient",
        "badge_hash",
        "audit_event",
    )

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in self._CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def get_audit_logger() -> logging.Logger:
    return logging.getLogger(AUDIT_LOGGER_NAME)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Configure the root logger for container environments.

    Args:
        level_name: Log level string (debug/info/warning/error)
        json_format: Emit JSON lines instead of the human-readable format.
                     Controlled by LOG_JSON in Settings.
    """
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    # Audit events are always kept, whatever the service log level.
    get_audit_logger().setLevel(min(level, logging.INFO))

    for name in ("uvicorn", "uvicorn.access", "uvicorn.error", "httpcore", "httpx"):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
