"""
Repositories for snapshots and their persisted recommendation rows.

``SnapshotRepository`` implements the ``SnapshotStore`` read side.
``RecommendationRepository`` owns ``snapshot_recommendations``; its
``insert_many`` is all-or-nothing via a savepoint so a failed regeneration
never leaves a partial set behind.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from upgrade_engine.db.repositories.base import BaseRepository
from upgrade_engine.errors import LookupFailedError
from upgrade_engine.models.recommendation import Recommendation
from upgrade_engine.models.snapshot import Snapshot
from upgrade_engine.utils.time_utils import from_iso

logger = logging.getLogger(__name__)


class SnapshotRepository(BaseRepository):
    """Read/write access to ``snapshots``."""

    def upsert(self, snapshot: Snapshot) -> None:
        """Insert a snapshot or update its job and location."""
        self.execute(
            """
            INSERT INTO snapshots (snapshot_id, job_id, zip, state)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(snapshot_id) DO UPDATE SET
                job_id = excluded.job_id,
                zip    = excluded.zip,
                state  = excluded.state;
            """,
            (snapshot.id, snapshot.job_id, snapshot.zip, snapshot.state),
        )

    def get(self, snapshot_id: str) -> Optional[Snapshot]:
        row = self.fetchone(
            "SELECT * FROM snapshots WHERE snapshot_id = ?;", (snapshot_id,)
        )
        return _row_to_snapshot(row) if row else None

    def snapshot_exists(self, snapshot_id: str) -> bool:
        row = self.fetchone(
            "SELECT 1 FROM snapshots WHERE snapshot_id = ?;", (snapshot_id,)
        )
        return row is not None


class RecommendationRepository(BaseRepository):
    """Read/write access to ``snapshot_recommendations``."""

    def delete_for_snapshot(self, snapshot_id: str) -> int:
        """Delete every row for a snapshot.

        Returns:
            Number of rows deleted.
        """
        cur = self.execute(
            "DELETE FROM snapshot_recommendations WHERE snapshot_id = ?;",
            (snapshot_id,),
        )
        return cur.rowcount

    def insert_many(self, recs: list[Recommendation]) -> int:
        """Insert rows as a single unit; on any failure none are kept.

        Rows are inserted in list order, so ascending ``rec_id`` reproduces
        the caller's ordering.

        Returns:
            Number of rows inserted.

        Raises:
            sqlite3.Error: If any insert fails (after rolling back the batch).
        """
        if not recs:
            return 0
        with self.savepoint("insert_recommendations"):
            self.executemany(
                """
                INSERT INTO snapshot_recommendations (
                    snapshot_id, job_id, section, feature_key, intent_key,
                    catalog_item_id, lead_class, confidence, chosen,
                    raw_feature, raw_condition, raw_recommendation,
                    error_code, error_message
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                [
                    (
                        r.snapshot_id,
                        r.job_id,
                        r.section.value,
                        r.feature_key,
                        r.intent_key,
                        r.catalog_item_id,
                        r.lead_class.value,
                        r.confidence,
                        int(r.chosen),
                        r.raw_feature,
                        r.raw_condition,
                        r.raw_recommendation,
                        r.error_code,
                        r.error_message,
                    )
                    for r in recs
                ],
            )
        return len(recs)

    def list_for_snapshot(self, snapshot_id: str) -> list[Recommendation]:
        """All rows for a snapshot in persisted (``rec_id``) order.

        Raises:
            LookupFailedError: If the query fails.
        """
        try:
            rows = self.fetchall(
                """
                SELECT * FROM snapshot_recommendations
                WHERE snapshot_id = ?
                ORDER BY rec_id;
                """,
                (snapshot_id,),
            )
        except sqlite3.Error as exc:
            raise LookupFailedError("recommendations", str(exc)) from exc
        return [_row_to_recommendation(r) for r in rows]

    def count_for_snapshot(self, snapshot_id: str) -> int:
        row = self.fetchone(
            "SELECT COUNT(*) FROM snapshot_recommendations WHERE snapshot_id = ?;",
            (snapshot_id,),
        )
        return row[0] if row else 0


# ── Private helpers ────────────────────────────────────────────────────────────

def _row_to_snapshot(row: sqlite3.Row) -> Snapshot:
    return Snapshot(
        id=row["snapshot_id"],
        job_id=row["job_id"],
        zip=row["zip"],
        state=row["state"],
        created_at=from_iso(row["created_at"]),
    )


def _row_to_recommendation(row: sqlite3.Row) -> Recommendation:
    return Recommendation(
        rec_id=row["rec_id"],
        snapshot_id=row["snapshot_id"],
        job_id=row["job_id"],
        section=row["section"],
        feature_key=row["feature_key"],
        intent_key=row["intent_key"],
        catalog_item_id=row["catalog_item_id"],
        lead_class=row["lead_class"],
        confidence=row["confidence"],
        chosen=bool(row["chosen"]),
        raw_feature=row["raw_feature"] or "",
        raw_condition=row["raw_condition"] or "",
        raw_recommendation=row["raw_recommendation"] or "",
        error_code=row["error_code"],
        error_message=row["error_message"],
    )
