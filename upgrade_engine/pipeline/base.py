"""
Audited pipeline stages.

A stage is built with an ``AppConfig`` and driven only through ``run()``,
which wraps the subclass's ``_execute()`` in a ``run_metadata`` record.

Status transitions:
  started → success   ``_execute()`` returned normally
  started → partial   ``_execute()`` set ``run.status = "partial"`` itself
                      (a non-fatal step failed, e.g. persisting recommendations)
  started → failed    ``_execute()`` raised; the exception is re-raised

Usage::

    class MyStage(PipelineStage):
        stage_name = "generate"

        def _execute(self, run: RunMetadata, **kwargs) -> int:
            return 42

    run = MyStage(config=app_config).run(snapshot_id="snap-1")
"""

from __future__ import annotations

import logging
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Generator
from uuid import uuid4

from upgrade_engine.config import AppConfig
from upgrade_engine.models.meta import RunMetadata
from upgrade_engine.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class PipelineStage(ABC):
    """One unit of pipeline work, audited in ``run_metadata``.

    Subclasses set ``stage_name`` (one of ``VALID_PIPELINE_STAGES``) and
    implement ``_execute()``, returning the number of rows handled.

    Attributes:
        config: Configuration the stage runs under.
        db_path: SQLite file; ``config.database.db_path`` unless overridden.
    """

    stage_name: str

    def __init__(
        self,
        config: AppConfig,
        db_path: str | None = None,
    ) -> None:
        self.config = config
        self.db_path = db_path or config.database.db_path

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Open a configured connection to this stage's database."""
        from upgrade_engine.db.connection import config_connection

        with config_connection(self.config.database, self.db_path) as conn:
            yield conn

    def run(self, **kwargs) -> RunMetadata:
        """Execute this pipeline stage and record the outcome.

        Args:
            **kwargs: Stage-specific keyword arguments passed to ``_execute()``.
                A ``snapshot_id`` keyword is also recorded on the run.

        Returns:
            ``RunMetadata`` with final ``status``, ``rows_processed``,
            and ``finished_at`` set.

        Raises:
            Exception: Whatever ``_execute()`` raised, after the run has been
                recorded as ``failed``.
        """
        run = self._new_run(kwargs.get("snapshot_id"))
        logger.info("Stage [%s] starting | run_slug=%s", self.stage_name, run.run_slug)

        try:
            rows = self._execute(run=run, **kwargs)
        except Exception as exc:
            self._finish(run, status="failed", error=str(exc))
            logger.error(
                "Stage [%s] FAILED: %s | run_slug=%s", self.stage_name, exc, run.run_slug
            )
            raise

        # _execute() may already have downgraded the run to "partial"
        self._finish(run, status="success" if run.status == "started" else run.status, rows=rows)
        logger.info(
            "Stage [%s] %s | rows=%d | run_slug=%s",
            self.stage_name, run.status, rows, run.run_slug,
        )
        return run

    def _new_run(self, snapshot_id: str | None) -> RunMetadata:
        return RunMetadata(
            run_slug=str(uuid4()),
            pipeline_stage=self.stage_name,
            snapshot_id=snapshot_id,
            config_snapshot=self.config.model_dump(mode="json"),
            started_at=utcnow(),
        )

    def _finish(
        self,
        run: RunMetadata,
        status: str,
        rows: int | None = None,
        error: str | None = None,
    ) -> None:
        run.status = status
        if rows is not None:
            run.rows_processed = rows
        if error is not None:
            run.error_message = error
        run.finished_at = utcnow()
        self._persist_run(run)

    @abstractmethod
    def _execute(self, run: RunMetadata, **kwargs) -> int:
        """Stage-specific implementation.

        Args:
            run: The in-progress ``RunMetadata`` record (mutable).
            **kwargs: Stage-specific parameters.

        Returns:
            Integer count of rows/records processed.
        """
        ...

    def _persist_run(self, run: RunMetadata) -> None:
        """Insert or update the ``RunMetadata`` record.

        Errors are logged, not raised: run persistence failure must not mask
        the original pipeline error.
        """
        try:
            from upgrade_engine.db.repositories.run_repo import RunMetadataRepository

            with self.connection() as conn:
                repo = RunMetadataRepository(conn)
                if run.run_id is None:
                    run.run_id = repo.insert_run(run)
                else:
                    repo.update_run(run)
        except Exception as exc:
            logger.error(
                "Failed to persist RunMetadata for run_slug=%s: %s",
                run.run_slug, exc,
            )
