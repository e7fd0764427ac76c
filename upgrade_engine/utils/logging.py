"""
Logging setup for the home upgrade engine.

``configure_logging(config)`` is called once at CLI entry, before any pipeline
work.  Library modules only ever use ``logging.getLogger(__name__)``; code
that works on a single snapshot wraps its logger with ``snapshot_logger()``
so every record carries the snapshot and job it belongs to.

Text format::

    2026-02-24T15:00:00Z [INFO] upgrade_engine.recommendations.persister: Saved 6 ... [snapshot=snap-1 job=job-42]

JSON format (``json_format = true`` under ``[logging]``), one object per line::

    {"ts": "...", "level": "INFO", "logger": "...", "msg": "...", "snapshot_id": "snap-1", "job_id": "job-42"}
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, MutableMapping, Optional

if TYPE_CHECKING:
    from upgrade_engine.config import LoggingConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

CONTEXT_FIELDS = ("snapshot_id", "job_id")

_QUIET_LOGGERS = ("pyarrow",)

# Attributes every LogRecord carries; anything else came in through extra=.
_STANDARD_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


class SnapshotLogAdapter(logging.LoggerAdapter):
    """Attach snapshot / job context to every record from the wrapped logger."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs


def snapshot_logger(
    logger: logging.Logger,
    snapshot_id: Optional[str],
    job_id: Optional[str] = None,
) -> SnapshotLogAdapter:
    """Wrap ``logger`` so its records carry ``snapshot_id`` and ``job_id``.

    ``None`` values are left off the record.
    """
    context = {
        key: value
        for key, value in (("snapshot_id", snapshot_id), ("job_id", job_id))
        if value is not None
    }
    return SnapshotLogAdapter(logger, context)


def _context_suffix(record: logging.LogRecord) -> str:
    parts = [
        f"{key.removesuffix('_id')}={getattr(record, key)}"
        for key in CONTEXT_FIELDS
        if getattr(record, key, None) is not None
    ]
    return f" [{' '.join(parts)}]" if parts else ""


class _TextFormatter(logging.Formatter):
    """Standard text lines, with snapshot context appended when present."""

    def format(self, record: logging.LogRecord) -> str:
        return super().format(record) + _context_suffix(record)


class _JsonFormatter(logging.Formatter):
    """Emit one JSON object per log line.

    Fields: ``ts``, ``level``, ``logger``, ``msg``, plus any ``extra=``
    fields (snapshot context included) at the top level.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime(
                LOG_DATE_FORMAT
            ),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        for key, val in record.__dict__.items():
            if key not in _STANDARD_RECORD_ATTRS and not key.startswith("_"):
                payload[key] = val
        return json.dumps(payload, default=str)


def _make_handler(
    handler: logging.Handler, level: int, formatter: logging.Formatter
) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def configure_logging(config: "LoggingConfig") -> None:
    """Configure the root logger from the ``[logging]`` config section.

    Installs a stdout handler, plus a file handler when ``config.log_file``
    is set (parent directories are created).  Any handlers from an earlier
    call are replaced.

    Args:
        config: Logging configuration section from ``AppConfig``.
    """
    level = getattr(logging, config.level.upper(), logging.INFO)

    formatter: logging.Formatter
    if config.json_format:
        formatter = _JsonFormatter()
    else:
        formatter = _TextFormatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    handlers = [_make_handler(logging.StreamHandler(sys.stdout), level, formatter)]

    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            _make_handler(logging.FileHandler(log_path, encoding="utf-8"), level, formatter)
        )

    logging.basicConfig(level=level, handlers=handlers, force=True)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
