"""
Base repository providing shared SQLite execution helpers.

All repositories inherit from ``BaseRepository`` and receive a
``sqlite3.Connection`` at construction time. The connection is opened and
committed by the caller (typically via ``get_connection()``); repositories
never commit on their own.

Design:
  - No ORM — all SQL is explicit and lives in repository methods.
  - Repositories speak Pydantic models, not raw dicts.
  - List-valued columns are JSON arrays; ``dump_list`` / ``load_list``
    are the only (de)serializers for them.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Generator, Iterable, Optional

logger = logging.getLogger(__name__)


def dump_list(values: Optional[Iterable[str]]) -> str:
    """Serialize a string collection to a sorted-stable JSON array."""
    if values is None:
        return "[]"
    if isinstance(values, (set, frozenset)):
        values = sorted(values)
    return json.dumps([str(v) for v in values])


def load_list(raw: Optional[str]) -> list[str]:
    """Deserialize a JSON array column; malformed or empty → ``[]``."""
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Malformed JSON list column: %r", raw)
        return []
    if not isinstance(parsed, list):
        return []
    return [str(v) for v in parsed if v is not None]


class BaseRepository:
    """Shared SQL execution helpers for all repository classes.

    Attributes:
        conn: The active ``sqlite3.Connection``.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def execute(
        self,
        sql: str,
        params: tuple[Any, ...] | dict[str, Any] = (),
    ) -> sqlite3.Cursor:
        logger.debug("SQL: %s | params: %s", sql.strip(), params)
        return self.conn.execute(sql, params)

    def executemany(
        self,
        sql: str,
        params_list: list[tuple[Any, ...] | dict[str, Any]],
    ) -> sqlite3.Cursor:
        logger.debug("SQL (many): %s | count: %d", sql.strip(), len(params_list))
        return self.conn.executemany(sql, params_list)

    def fetchone(
        self,
        sql: str,
        params: tuple[Any, ...] | dict[str, Any] = (),
    ) -> Optional[sqlite3.Row]:
        return self.execute(sql, params).fetchone()

    def fetchall(
        self,
        sql: str,
        params: tuple[Any, ...] | dict[str, Any] = (),
    ) -> list[sqlite3.Row]:
        return self.execute(sql, params).fetchall()

    @contextmanager
    def savepoint(self, name: str) -> Generator[None, None, None]:
        """Make the enclosed statements all-or-nothing.

        On exception the statements since the savepoint are rolled back and
        the exception propagates; work done before the savepoint is kept.

        Args:
            name: Savepoint identifier (must be a valid SQL identifier).
        """
        self.conn.execute(f"SAVEPOINT {name};")
        try:
            yield
        except Exception:
            self.conn.execute(f"ROLLBACK TO SAVEPOINT {name};")
            self.conn.execute(f"RELEASE SAVEPOINT {name};")
            raise
        self.conn.execute(f"RELEASE SAVEPOINT {name};")
