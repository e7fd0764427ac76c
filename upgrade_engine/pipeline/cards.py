"""
BuildCardsStage — assemble ranked upgrade cards for a snapshot and write
them to report files.

Card flow
---------
  1. Load the snapshot; its stored ZIP / state are the defaults for
     incentive targeting.
  2. ``build_cards()`` over the SQLite repositories.
  3. Write CSV + JSON (and Parquet when ``cards.write_parquet``) to
     ``config.cards.output_dir``.

The built cards are kept on ``last_cards``.  Returns the number of cards.
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

from upgrade_engine.config import AppConfig
from upgrade_engine.models.economics import UpgradeCard
from upgrade_engine.models.meta import RunMetadata
from upgrade_engine.pipeline.base import PipelineStage

logger = logging.getLogger(__name__)


class BuildCardsStage(PipelineStage):
    """Persisted recommendations → ranked ``UpgradeCard`` reports."""

    stage_name = "build_cards"

    def __init__(self, config: AppConfig, db_path: str | None = None) -> None:
        super().__init__(config, db_path)
        self.last_cards: list[UpgradeCard] = []

    def _execute(
        self,
        run: RunMetadata,
        snapshot_id: str,
        zip_code: str | None = None,
        state: str | None = None,
        output_dir: Path | None = None,
        write_reports: bool = True,
        **kwargs,
    ) -> int:
        """Build and report cards for one snapshot.

        Args:
            run:           In-progress RunMetadata (mutable).
            snapshot_id:   Target snapshot.
            zip_code:      ZIP override; defaults to the snapshot's ZIP.
            state:         State override; defaults to the snapshot's state.
            output_dir:    Report directory override.
            write_reports: Skip file output when ``False``.

        Returns:
            Number of cards built.

        Raises:
            SnapshotNotFoundError: If the snapshot does not exist.
            LookupFailedError: If the recommendation or catalog lookup fails.
        """
        from upgrade_engine.db.repositories.assumption_repo import AssumptionRepository
        from upgrade_engine.db.repositories.catalog_repo import CatalogRepository
        from upgrade_engine.db.repositories.incentive_repo import IncentiveRuleRepository
        from upgrade_engine.db.repositories.snapshot_repo import (
            RecommendationRepository,
            SnapshotRepository,
        )
        from upgrade_engine.errors import SnapshotNotFoundError
        from upgrade_engine.recommendations.cards import build_cards
        from upgrade_engine.recommendations.reporter import (
            write_cards_csv,
            write_cards_json,
            write_cards_parquet,
        )

        self._persist_run(run)
        incentive_cfg = self.config.incentives

        with self.connection() as conn:
            snapshot = SnapshotRepository(conn).get(snapshot_id)
            if snapshot is None:
                raise SnapshotNotFoundError(snapshot_id)

            regions = {"state": state or snapshot.state}
            cards = build_cards(
                snapshot_id,
                zip_code or snapshot.zip,
                regions,
                recommendations=RecommendationRepository(conn),
                catalog=CatalogRepository(conn),
                assumptions=AssumptionRepository(conn),
                incentives=IncentiveRuleRepository(conn) if incentive_cfg.enabled else None,
                disclaimer=incentive_cfg.disclaimer,
            )

        self.last_cards = cards

        if write_reports:
            out_dir = Path(output_dir or self.config.cards.output_dir)
            today = date.today()
            write_cards_csv(cards, out_dir, snapshot_id, today)
            write_cards_json(cards, out_dir, snapshot_id, today, run_slug=run.run_slug)
            if self.config.cards.write_parquet:
                write_cards_parquet(cards, out_dir, snapshot_id, today)

        logger.info(
            "BuildCardsStage complete: snapshot=%s cards=%d", snapshot_id, len(cards)
        )
        return len(cards)
