"""
GenerateRecommendationsStage — classify a snapshot's inspection findings and
replace its persisted recommendations.

Generation flow
---------------
  1. Check the snapshot exists (fail fast before any classification).
  2. Load findings (passed in, or parsed from a CSV / JSON file).
  3. Classify and sort them against the catalog.
  4. Replace the snapshot's recommendation rows.  The snapshot lock is held
     until the connection commits, so concurrent runs never interleave.

A failed insert does not fail the stage: the run is recorded as
``partial`` with the persister's error and the ``PersistResult`` is kept on
``last_result`` so the caller can decide whether to retry.

Returns the number of recommendation rows inserted.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from upgrade_engine.config import AppConfig
from upgrade_engine.models.finding import Finding
from upgrade_engine.models.meta import RunMetadata
from upgrade_engine.models.recommendation import PersistResult
from upgrade_engine.pipeline.base import PipelineStage
from upgrade_engine.recommendations.persister import DEFAULT_LOCKS, SnapshotLockRegistry

logger = logging.getLogger(__name__)


class GenerateRecommendationsStage(PipelineStage):
    """Findings → classified recommendations → ``snapshot_recommendations``."""

    stage_name = "generate"

    def __init__(
        self,
        config: AppConfig,
        db_path: str | None = None,
        locks: SnapshotLockRegistry = DEFAULT_LOCKS,
    ) -> None:
        super().__init__(config, db_path)
        self.locks = locks
        self.last_result: Optional[PersistResult] = None

    def _execute(
        self,
        run: RunMetadata,
        snapshot_id: str,
        job_id: str | None = None,
        findings: list[Finding] | None = None,
        findings_path: Path | None = None,
        **kwargs,
    ) -> int:
        """Classify findings and persist recommendations for one snapshot.

        Args:
            run:           In-progress RunMetadata (mutable).
            snapshot_id:   Target snapshot.
            job_id:        Job that triggered generation (audit only).
            findings:      Findings to classify.
            findings_path: CSV / JSON findings file, used when ``findings``
                           is not given.

        Returns:
            Recommendation rows inserted.

        Raises:
            SnapshotNotFoundError: If the snapshot does not exist.
            ValueError: If neither findings nor a findings file are supplied,
                or the file fails validation.
            LookupFailedError: If a catalog lookup fails.
        """
        from upgrade_engine.db.repositories.catalog_repo import CatalogRepository
        from upgrade_engine.db.repositories.snapshot_repo import (
            RecommendationRepository,
            SnapshotRepository,
        )
        from upgrade_engine.errors import SnapshotNotFoundError
        from upgrade_engine.ingestion.findings_file import parse_findings_file
        from upgrade_engine.recommendations.classifier import classify_batch
        from upgrade_engine.recommendations.persister import persist

        self._persist_run(run)

        if findings is None:
            if findings_path is None:
                raise ValueError("Either findings or findings_path is required.")
            findings = parse_findings_file(Path(findings_path))

        limits = self.config.classifier

        # The lock spans the commit on connection exit, not just the writes.
        with self.locks.hold(snapshot_id), self.connection() as conn:
            snapshots = SnapshotRepository(conn)
            if not snapshots.snapshot_exists(snapshot_id):
                raise SnapshotNotFoundError(snapshot_id)

            classified = classify_batch(
                findings,
                CatalogRepository(conn),
                catalog_query_limit=limits.catalog_query_limit,
                max_candidates=limits.max_candidates,
            )

            result = persist(
                snapshots,
                RecommendationRepository(conn),
                snapshot_id,
                job_id,
                classified,
            )

        self.last_result = result
        if not result.ok:
            run.status = "partial"
            run.error_message = result.error
            logger.warning(
                "Recommendations not saved for snapshot %s: %s", snapshot_id, result.error
            )
            return 0

        logger.info(
            "GenerateRecommendationsStage complete: snapshot=%s inserted=%d replaced=%d",
            snapshot_id, result.inserted, result.deleted,
        )
        return result.inserted
