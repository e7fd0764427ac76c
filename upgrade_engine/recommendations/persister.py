"""
Recommendation persister: replaces a snapshot's recommendation rows with a
freshly classified set.

Regeneration sequence
---------------------
  1. The snapshot must exist; otherwise return ``ok=False`` with no writes.
  2. Build one row per classified finding (first candidate is the chosen
     catalog item; no candidate → ``NO_MATCH`` row).
  3. No rows → ``ok=True`` with zero counts and no writes.
  4. Delete prior rows.  A delete failure is logged and the insert is still
     attempted.
  5. Insert the new rows all-or-nothing.  A failure is returned as
     ``ok=False``; it is never raised to the caller.

Delete-then-insert is not safe if the same snapshot is regenerated
concurrently; callers serialize per snapshot with ``SnapshotLockRegistry``.
The lock has to be held until the owning connection commits.
``regenerate()`` releases it on return, so it only suits callers that have
already committed or run in autocommit; the pipeline stage holds the lock
itself around its whole connection block and calls ``persist()``.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Generator, Optional, Sequence

from upgrade_engine.errors import SnapshotNotFoundError
from upgrade_engine.models.finding import ClassifiedFinding
from upgrade_engine.models.recommendation import (
    NO_MATCH_CODE,
    NO_MATCH_MESSAGE,
    PersistResult,
    Recommendation,
)
from upgrade_engine.recommendations.sources import RecommendationStore, SnapshotStore
from upgrade_engine.utils.logging import snapshot_logger

logger = logging.getLogger(__name__)


class SnapshotLockRegistry:
    """One ``threading.Lock`` per snapshot id.

    Regenerations of the same snapshot run one at a time; different
    snapshots never contend.  Locks are process-local.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def lock_for(self, snapshot_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(snapshot_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[snapshot_id] = lock
            return lock

    @contextmanager
    def hold(self, snapshot_id: str) -> Generator[None, None, None]:
        """Hold the snapshot's lock for the duration of the block."""
        lock = self.lock_for(snapshot_id)
        with lock:
            yield


DEFAULT_LOCKS = SnapshotLockRegistry()


def build_rows(
    snapshot_id: str,
    job_id: Optional[str],
    classified: Sequence[ClassifiedFinding],
) -> list[Recommendation]:
    """Turn classified findings into recommendation rows, in input order."""
    rows: list[Recommendation] = []
    for c in classified:
        chosen = c.candidate_matches[0] if c.candidate_matches else None
        rows.append(
            Recommendation(
                snapshot_id=snapshot_id,
                job_id=job_id,
                section=c.section,
                feature_key=c.feature_key,
                intent_key=c.intent_key,
                catalog_item_id=chosen.id if chosen else None,
                lead_class=c.lead_class,
                confidence=c.confidence,
                chosen=chosen is not None,
                raw_feature=c.raw_feature,
                raw_condition=c.raw_condition,
                raw_recommendation=c.raw_recommendation,
                error_code=None if chosen else NO_MATCH_CODE,
                error_message=None if chosen else NO_MATCH_MESSAGE,
            )
        )
    return rows


def persist(
    snapshots: SnapshotStore,
    recommendations: RecommendationStore,
    snapshot_id: str,
    job_id: Optional[str],
    classified: Sequence[ClassifiedFinding],
) -> PersistResult:
    """Replace a snapshot's recommendation rows.

    Args:
        snapshots: Snapshot existence lookup.
        recommendations: Recommendation row storage.
        snapshot_id: Target snapshot.
        job_id: Job that triggered generation (audit only).
        classified: Classified findings in presentation order.

    Returns:
        ``PersistResult``; ``ok=False`` for a missing snapshot or a failed
        insert, with ``error`` describing the cause.
    """
    if not snapshot_id or not snapshot_id.strip():
        logger.error("Recommendation persist called without a snapshot_id.")
        return PersistResult(ok=False, error="missing snapshot_id")

    log = snapshot_logger(logger, snapshot_id, job_id)

    try:
        exists = snapshots.snapshot_exists(snapshot_id)
    except Exception as exc:
        log.error("Snapshot lookup failed: %s", exc)
        return PersistResult(ok=False, error=f"snapshot lookup failed: {exc}")
    if not exists:
        err = SnapshotNotFoundError(snapshot_id)
        log.error("%s", err)
        return PersistResult(ok=False, error=str(err))

    rows = build_rows(snapshot_id, job_id, classified)
    if not rows:
        return PersistResult(ok=True, inserted=0, deleted=0)

    deleted = 0
    try:
        deleted = recommendations.delete_for_snapshot(snapshot_id)
    except Exception as exc:
        log.warning("Deleting prior recommendations failed: %s", exc)

    try:
        inserted = recommendations.insert_many(rows)
    except Exception as exc:
        log.error("Recommendation insert failed: %s", exc)
        return PersistResult(ok=False, inserted=0, deleted=deleted, error=str(exc))

    unmatched = sum(1 for r in rows if not r.chosen)
    log.info(
        "Saved %d recommendation(s) (replaced=%d, no_match=%d)",
        inserted, deleted, unmatched,
    )
    return PersistResult(ok=True, inserted=inserted, deleted=deleted)


def regenerate(
    snapshots: SnapshotStore,
    recommendations: RecommendationStore,
    snapshot_id: str,
    job_id: Optional[str],
    classified: Sequence[ClassifiedFinding],
    locks: SnapshotLockRegistry = DEFAULT_LOCKS,
) -> PersistResult:
    """``persist()`` while holding the snapshot's regeneration lock."""
    with locks.hold(snapshot_id):
        return persist(snapshots, recommendations, snapshot_id, job_id, classified)
