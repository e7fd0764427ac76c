"""
SQLite schema DDL — all CREATE TABLE and CREATE INDEX statements.

All statements use ``IF NOT EXISTS`` so ``apply_schema()`` is **idempotent**:
safe to call on an already-initialized database (e.g. after restart or in tests).

Table creation order respects foreign key dependencies:
  1. snapshots                 (no FKs)
  2. catalog_items             (no FKs)
  3. upgrade_types             (no FKs)
  4. catalog_upgrade_types     (→ catalog_items, upgrade_types)
  5. upgrade_type_assumptions  (→ upgrade_types)
  6. incentive_rules           (no FKs)
  7. snapshot_recommendations  (→ snapshots, ON DELETE CASCADE)
  8. run_metadata              (no FKs)

``snapshot_recommendations.catalog_item_id`` deliberately has no FK: the
catalog is owned by an external service and rows must survive a catalog
item being retired.

List-valued columns (intent keys, tags, scope values, applicability sets)
are stored as JSON arrays in TEXT columns.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# ── DDL statements ─────────────────────────────────────────────────────────────

_DDL_SNAPSHOTS = """
CREATE TABLE IF NOT EXISTS snapshots (
    snapshot_id     TEXT    PRIMARY KEY,
    job_id          TEXT,
    zip             TEXT,
    state           TEXT,
    created_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_CATALOG_ITEMS = """
CREATE TABLE IF NOT EXISTS catalog_items (
    catalog_item_id TEXT    PRIMARY KEY,
    display_name    TEXT    NOT NULL,
    description     TEXT,
    feature_key     TEXT    NOT NULL,
    lead_class      TEXT    NOT NULL CHECK (lead_class IN ('equipment', 'service')),
    intent_keys     TEXT    NOT NULL DEFAULT '[]',
    tags            TEXT    NOT NULL DEFAULT '[]',
    sort_rank       INTEGER,
    is_active       INTEGER NOT NULL DEFAULT 1,
    updated_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_catalog_match
    ON catalog_items(feature_key, lead_class, is_active);
"""

_DDL_UPGRADE_TYPES = """
CREATE TABLE IF NOT EXISTS upgrade_types (
    upgrade_type_id TEXT    PRIMARY KEY,
    name            TEXT    NOT NULL,
    type_key        TEXT
);
"""

_DDL_CATALOG_UPGRADE_TYPES = """
CREATE TABLE IF NOT EXISTS catalog_upgrade_types (
    catalog_item_id TEXT    NOT NULL REFERENCES catalog_items(catalog_item_id) ON DELETE CASCADE,
    upgrade_type_id TEXT    NOT NULL REFERENCES upgrade_types(upgrade_type_id) ON DELETE CASCADE,
    PRIMARY KEY (catalog_item_id, upgrade_type_id)
);
"""

_DDL_UPGRADE_TYPE_ASSUMPTIONS = """
CREATE TABLE IF NOT EXISTS upgrade_type_assumptions (
    assumption_id       INTEGER PRIMARY KEY AUTOINCREMENT,
    upgrade_type_id     TEXT    NOT NULL REFERENCES upgrade_types(upgrade_type_id) ON DELETE CASCADE,
    install_cost_min    REAL,
    install_cost_max    REAL,
    annual_savings_min  REAL,
    annual_savings_max  REAL,
    expected_life_years REAL,
    updated_at          TEXT,
    source              TEXT
);

CREATE INDEX IF NOT EXISTS idx_assumptions_type
    ON upgrade_type_assumptions(upgrade_type_id);
"""

_DDL_INCENTIVE_RULES = """
CREATE TABLE IF NOT EXISTS incentive_rules (
    incentive_id             TEXT    PRIMARY KEY,
    name                     TEXT    NOT NULL,
    level                    TEXT    NOT NULL DEFAULT 'other',
    amount_min               REAL,
    amount_max               REAL,
    amount_unit              TEXT    NOT NULL DEFAULT 'usd',
    scope_mode               TEXT    NOT NULL DEFAULT 'all',
    scope_values             TEXT    NOT NULL DEFAULT '[]',
    applies_to_catalog_ids   TEXT    NOT NULL DEFAULT '[]',
    applies_to_tags          TEXT    NOT NULL DEFAULT '[]',
    applies_to_upgrade_types TEXT    NOT NULL DEFAULT '[]',
    url                      TEXT,
    notes                    TEXT,
    is_active                INTEGER NOT NULL DEFAULT 1
);
"""

_DDL_SNAPSHOT_RECOMMENDATIONS = """
CREATE TABLE IF NOT EXISTS snapshot_recommendations (
    rec_id              INTEGER PRIMARY KEY AUTOINCREMENT,
    snapshot_id         TEXT    NOT NULL REFERENCES snapshots(snapshot_id) ON DELETE CASCADE,
    job_id              TEXT,
    section             TEXT    NOT NULL,
    feature_key         TEXT    NOT NULL,
    intent_key          TEXT    NOT NULL,
    catalog_item_id     TEXT,
    lead_class          TEXT    NOT NULL,
    confidence          REAL    NOT NULL,
    chosen              INTEGER NOT NULL DEFAULT 0,
    raw_feature         TEXT,
    raw_condition       TEXT,
    raw_recommendation  TEXT,
    error_code          TEXT,
    error_message       TEXT,
    created_at          TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_recs_snapshot
    ON snapshot_recommendations(snapshot_id);
"""

_DDL_RUN_METADATA = """
CREATE TABLE IF NOT EXISTS run_metadata (
    run_id          INTEGER PRIMARY KEY AUTOINCREMENT,
    run_slug        TEXT    NOT NULL UNIQUE,
    pipeline_stage  TEXT    NOT NULL,
    status          TEXT    NOT NULL DEFAULT 'started',
    snapshot_id     TEXT,
    config_snapshot TEXT    NOT NULL,
    rows_processed  INTEGER NOT NULL DEFAULT 0,
    error_message   TEXT,
    started_at      TEXT    NOT NULL,
    finished_at     TEXT
);
"""

_ALL_DDL: list[str] = [
    _DDL_SNAPSHOTS,
    _DDL_CATALOG_ITEMS,
    _DDL_UPGRADE_TYPES,
    _DDL_CATALOG_UPGRADE_TYPES,
    _DDL_UPGRADE_TYPE_ASSUMPTIONS,
    _DDL_INCENTIVE_RULES,
    _DDL_SNAPSHOT_RECOMMENDATIONS,
    _DDL_RUN_METADATA,
]

ALL_TABLE_NAMES: list[str] = [
    "snapshots",
    "catalog_items",
    "upgrade_types",
    "catalog_upgrade_types",
    "upgrade_type_assumptions",
    "incentive_rules",
    "snapshot_recommendations",
    "run_metadata",
]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes.

    Idempotent — safe to call on an already-initialized database.

    Args:
        conn: An open ``sqlite3.Connection`` (FK enforcement should be ON).
    """
    logger.debug("Applying schema to database...")

    for ddl in _ALL_DDL:
        for statement in _split_ddl(ddl):
            conn.execute(statement)

    conn.commit()
    logger.info("Schema applied: %d tables, indexes created/verified.", len(ALL_TABLE_NAMES))


def _split_ddl(ddl: str) -> list[str]:
    """Split a multi-statement DDL block on semicolons."""
    return [s.strip() for s in ddl.split(";") if s.strip()]


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Return the sorted list of table names present in the database."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]
