"""
SQLite connection management.

``get_connection()`` is the only way the engine opens the database:
  - Foreign keys ON (recommendation rows cascade with their snapshot).
  - WAL journal mode so card builds can read while a snapshot regenerates.
  - Busy timeout for lock contention between concurrent regenerations.
  - ``sqlite3.Row`` factory so repositories can read columns by name.
  - Commit on clean exit, rollback on exception.

``config_connection()`` is the same context manager driven by a
``DatabaseConfig`` section, used by the CLI and pipeline stages.

Usage::

    from upgrade_engine.db.connection import get_connection

    with get_connection("data/db/upgrade_engine.db") as conn:
        SnapshotRepository(conn).snapshot_exists("snap-1")
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Generator, Optional

if TYPE_CHECKING:
    from upgrade_engine.config import DatabaseConfig

logger = logging.getLogger(__name__)


def configure_connection(
    conn: sqlite3.Connection,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> sqlite3.Connection:
    """Apply the row factory and pragmas every engine connection needs.

    Pragmas must be set before any DML/DDL on the connection.

    Args:
        conn: A freshly opened connection.
        wal_mode: Enable WAL journaling (ignored for ``:memory:`` databases).
        busy_timeout_ms: Milliseconds to wait on a locked database.

    Returns:
        The same connection, configured.
    """
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)};")
    if wal_mode:
        conn.execute("PRAGMA journal_mode = WAL;")
    return conn


@contextmanager
def get_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> Generator[sqlite3.Connection, None, None]:
    """Context manager yielding a configured SQLite connection.

    The database file (and any parent directories) are created if they do
    not already exist.

    Args:
        db_path: Path to the SQLite database file, or ``":memory:"``.
        wal_mode: If ``True``, enable WAL journal mode.
        busy_timeout_ms: Milliseconds to wait when the database is locked.

    Yields:
        An open, configured ``sqlite3.Connection``.

    Raises:
        sqlite3.OperationalError: If the database cannot be opened or is locked.
    """
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, timeout=busy_timeout_ms / 1000)
    try:
        configure_connection(
            conn,
            wal_mode=wal_mode and db_path != ":memory:",
            busy_timeout_ms=busy_timeout_ms,
        )
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


@contextmanager
def config_connection(
    database: "DatabaseConfig",
    db_path: Optional[str] = None,
) -> Generator[sqlite3.Connection, None, None]:
    """``get_connection()`` driven by a ``DatabaseConfig`` section.

    Args:
        database: The ``[database]`` config section.
        db_path: Optional override of ``database.db_path``.
    """
    with get_connection(
        db_path or database.db_path,
        wal_mode=database.wal_mode,
        busy_timeout_ms=database.busy_timeout_ms,
    ) as conn:
        yield conn
