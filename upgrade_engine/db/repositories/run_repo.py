"""
Repository for the ``run_metadata`` audit table.

Stages that touch the database insert their row before doing any work
(``status='started'``) and update it once they finish, so a crashed process
leaves a visible ``started`` row behind.
"""

from __future__ import annotations

import json
import sqlite3
from typing import Optional

from upgrade_engine.db.repositories.base import BaseRepository
from upgrade_engine.models.meta import RunMetadata
from upgrade_engine.utils.time_utils import from_iso, to_iso

# Columns written on insert, in placeholder order.
_INSERT_COLUMNS = (
    "run_slug", "pipeline_stage", "status", "snapshot_id", "config_snapshot",
    "rows_processed", "error_message", "started_at", "finished_at",
)

# Columns a finished stage may change.
_UPDATE_COLUMNS = (
    "status", "snapshot_id", "rows_processed", "error_message", "finished_at",
)


def _column_values(run: RunMetadata, columns: tuple[str, ...]) -> list:
    encoders = {
        "config_snapshot": lambda r: json.dumps(r.config_snapshot, default=str),
        "started_at": lambda r: to_iso(r.started_at),
        "finished_at": lambda r: to_iso(r.finished_at),
    }
    return [
        encoders[col](run) if col in encoders else getattr(run, col)
        for col in columns
    ]


class RunMetadataRepository(BaseRepository):
    """Read/write access to ``run_metadata``."""

    def insert_run(self, run: RunMetadata) -> int:
        """Insert a run record and return its ``run_id``."""
        placeholders = ", ".join("?" for _ in _INSERT_COLUMNS)
        cur = self.execute(
            f"INSERT INTO run_metadata ({', '.join(_INSERT_COLUMNS)}) "
            f"VALUES ({placeholders});",
            tuple(_column_values(run, _INSERT_COLUMNS)),
        )
        return cur.lastrowid

    def update_run(self, run: RunMetadata) -> None:
        """Write the mutable fields of an existing run record.

        Raises:
            ValueError: If ``run.run_id`` is ``None`` (never inserted).
        """
        if run.run_id is None:
            raise ValueError("Cannot update RunMetadata without a run_id.")
        assignments = ", ".join(f"{col} = ?" for col in _UPDATE_COLUMNS)
        self.execute(
            f"UPDATE run_metadata SET {assignments} WHERE run_id = ?;",
            (*_column_values(run, _UPDATE_COLUMNS), run.run_id),
        )

    def get_run_by_slug(self, run_slug: str) -> Optional[RunMetadata]:
        row = self.fetchone(
            "SELECT * FROM run_metadata WHERE run_slug = ?;", (run_slug,)
        )
        return _row_to_run(row) if row else None

    def get_recent_runs(
        self,
        pipeline_stage: Optional[str] = None,
        limit: int = 20,
    ) -> list[RunMetadata]:
        """Newest runs first, optionally restricted to one stage."""
        where, params = ("WHERE pipeline_stage = ?", (pipeline_stage,)) if pipeline_stage else ("", ())
        rows = self.fetchall(
            f"SELECT * FROM run_metadata {where} "
            "ORDER BY started_at DESC, run_id DESC LIMIT ?;",
            (*params, limit),
        )
        return [_row_to_run(r) for r in rows]


def _row_to_run(row: sqlite3.Row) -> RunMetadata:
    return RunMetadata(
        run_id=row["run_id"],
        run_slug=row["run_slug"],
        pipeline_stage=row["pipeline_stage"],
        status=row["status"],
        snapshot_id=row["snapshot_id"],
        config_snapshot=json.loads(row["config_snapshot"]),
        rows_processed=row["rows_processed"],
        error_message=row["error_message"],
        started_at=from_iso(row["started_at"]),
        finished_at=from_iso(row["finished_at"]),
    )
