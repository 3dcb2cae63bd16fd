"""Logging configuration for the check-in service.

Two output modes, selected by LOG_JSON:

  _ContainerFormatter: human-readable single line for a terminal.
    Door staff and developers tail these during an event.

  _JsonFormatter: one JSON object per line for a log aggregator.
    Every scan and registration decision carries structured fields
    (credential_id, external_id, batch_id, outcome, station_id) so the
    aggregator can answer "which door scanned credential X, and when?"
    without regex parsing.

Context fields reach the record two ways: the request-context record
factory stamps request_id/station_id on every record, and the core
services pass decision fields through ``extra=``.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime


def _iso_utc(created: float) -> str:
    return datetime.fromtimestamp(created, tz=UTC).isoformat(timespec="milliseconds")


class _ContainerFormatter(logging.Formatter):
    """One line per record for a terminal or container stdout.

    ``2026-10-18T19:04:11.532+00:00 WARNING  checkin.services.redemption  Scan
    already_redeemed ...  station=north-door  [redemption.py:97]``

    The station suffix appears only inside a request that sent
    X-Station-ID; the file location only from WARNING up.
    """

    def __init__(self) -> None:
        super().__init__("%(levelname)-8s %(name)s  %(message)s")

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return _iso_utc(record.created)

    def format(self, record: logging.LogRecord) -> str:
        line = f"{self.formatTime(record)} {super().format(record)}"
        station = getattr(record, "station_id", None)
        if station and station != "-":
            line = _insert_before_traceback(line, f"  station={station}")
        if record.levelno >= logging.WARNING:
            line = _insert_before_traceback(
                line, f"  [{record.filename}:{record.lineno}]"
            )
        return line


def _insert_before_traceback(line: str, suffix: str) -> str:
    head, sep, tail = line.partition("\n")
    return f"{head}{suffix}{sep}{tail}"


class _JsonFormatter(logging.Formatter):
    """JSON Lines formatter.

    Known context fields are promoted to top-level keys when present on
    the record; absent or None fields are omitted.
    """

    _CONTEXT_FIELDS = (
        "request_id",
        "station_id",
        "method",
        "path",
        "status_code",
        "duration_ms",
        "credential_id",
        "external_id",
        "batch_id",
        "outcome",
        "operation",
    )

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": _iso_utc(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in self._CONTEXT_FIELDS:
            value = getattr(record, key, None)
            # "-" is the ContextVar default outside a request
            if value not in (None, "-"):
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Configure the root logger for container environments.

    Args:
        level_name: Log level string (debug/info/warning/error). Unknown
                    names fall back to INFO.
        json_format: Emit JSON lines instead of the human-readable format.
    """
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    # SQL echo and connection chatter stay at WARNING unless asked for
    for name in (
        "uvicorn",
        "uvicorn.access",
        "uvicorn.error",
        "httpcore",
        "httpx",
        "sqlalchemy.engine",
    ):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
