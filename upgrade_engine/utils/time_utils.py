"""
Time helpers shared by the pipeline and the assumption resolver.

Timestamps in reference data arrive as free-form strings from several
sources (ISO 8601 with ``Z``, with an offset, date-only, or garbage).
``parse_epoch_ms`` turns any of these into a sortable number, with ``0``
meaning "unknown" so unparsable values always lose recency comparisons.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)


def parse_epoch_ms(value: Any) -> float:
    """Parse a timestamp value into epoch milliseconds.

    Accepts ``datetime`` / ``date`` objects and ISO 8601 strings (trailing
    ``Z`` allowed).  Naive datetimes are treated as UTC.

    Args:
        value: Timestamp-like value, or ``None``.

    Returns:
        Epoch milliseconds, or ``0.0`` if the value is missing or unparsable.
    """
    if value is None:
        return 0.0

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if not text:
            return 0.0
        try:
            dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return 0.0

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp() * 1000.0


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """ISO 8601 text for a DB column; ``None`` passes through."""
    return value.isoformat() if value is not None else None


def from_iso(text: Optional[str]) -> Optional[datetime]:
    """Inverse of ``to_iso``; also accepts SQLite's ``Z``-suffixed timestamps."""
    if not text:
        return None
    return datetime.fromisoformat(text.replace("Z", "+00:00"))
