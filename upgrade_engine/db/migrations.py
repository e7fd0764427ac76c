"""
Sequential schema migrations.

Not a migration framework (no Alembic, no down migrations):

  1. A ``schema_versions`` table tracks applied migration IDs.
  2. Each migration is a function taking a ``sqlite3.Connection``.
  3. ``run_migrations()`` applies any migrations not yet recorded, in
     ``MIGRATIONS`` insertion order.

``apply_schema()`` creates the current schema; migrations only patch
databases created by older releases, so each one must be a no-op on a
freshly created database.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable

logger = logging.getLogger(__name__)

MigrationFn = Callable[[sqlite3.Connection], None]


def _ensure_version_table(conn: sqlite3.Connection) -> None:
    """Create the ``schema_versions`` tracking table if it does not exist."""
    conn.execute("""
        CREATE TABLE IF NOT EXISTS schema_versions (
            version_id  TEXT    NOT NULL PRIMARY KEY,
            applied_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
            description TEXT
        );
    """)
    conn.commit()


def _get_applied_versions(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute("SELECT version_id FROM schema_versions;").fetchall()
    return {row["version_id"] for row in rows}


def _mark_applied(conn: sqlite3.Connection, version_id: str, description: str) -> None:
    conn.execute(
        "INSERT INTO schema_versions(version_id, description) VALUES (?, ?);",
        (version_id, description),
    )
    conn.commit()


def _column_names(conn: sqlite3.Connection, table: str) -> set[str]:
    return {row[1] for row in conn.execute(f"PRAGMA table_info({table});").fetchall()}


# ── Migration functions ────────────────────────────────────────────────────────

def migration_0001_baseline(conn: sqlite3.Connection) -> None:
    """Anchor the version baseline; the schema itself comes from apply_schema()."""


def migration_0002_assumption_source(conn: sqlite3.Connection) -> None:
    """Add the ``source`` label to upgrade_type_assumptions."""
    if "source" not in _column_names(conn, "upgrade_type_assumptions"):
        conn.execute("ALTER TABLE upgrade_type_assumptions ADD COLUMN source TEXT;")
    conn.commit()


def migration_0003_recommendation_section(conn: sqlite3.Connection) -> None:
    """Add ``section`` and ``job_id`` to snapshot_recommendations."""
    existing = _column_names(conn, "snapshot_recommendations")
    if "section" not in existing:
        conn.execute(
            "ALTER TABLE snapshot_recommendations "
            "ADD COLUMN section TEXT NOT NULL DEFAULT 'additional';"
        )
    if "job_id" not in existing:
        conn.execute("ALTER TABLE snapshot_recommendations ADD COLUMN job_id TEXT;")
    conn.commit()


MIGRATIONS: dict[str, tuple[MigrationFn, str]] = {
    "0001_baseline": (
        migration_0001_baseline,
        "Baseline: schema_versions table created",
    ),
    "0002_assumption_source": (
        migration_0002_assumption_source,
        "Add source column to upgrade_type_assumptions",
    ),
    "0003_recommendation_section": (
        migration_0003_recommendation_section,
        "Add section and job_id columns to snapshot_recommendations",
    ),
}


def run_migrations(conn: sqlite3.Connection) -> int:
    """Apply all pending migrations.

    Args:
        conn: An open ``sqlite3.Connection`` with the schema applied.

    Returns:
        Number of migrations applied in this call.
    """
    _ensure_version_table(conn)
    applied = _get_applied_versions(conn)

    count = 0
    for version_id, (fn, description) in MIGRATIONS.items():
        if version_id in applied:
            logger.debug("Migration %s already applied; skipping.", version_id)
            continue

        logger.info("Applying migration %s: %s", version_id, description)
        try:
            fn(conn)
            _mark_applied(conn, version_id, description)
            count += 1
        except Exception as exc:
            conn.rollback()
            logger.error("Migration %s FAILED: %s", version_id, exc)
            raise

    if count:
        logger.info("Applied %d migration(s).", count)
    return count
