"""
Tests for upgrade_engine/recommendations/persister.py.

What we test
------------
build_rows():
  - First candidate becomes the chosen catalog item.
  - No candidate → NO_MATCH row with chosen=False.

persist() (fake stores):
  - Missing / blank snapshot → ok=False, no writes.
  - Empty input → ok=True with zero counts, prior rows untouched.
  - Delete failure is non-fatal; insert still attempted.
  - Insert failure → ok=False with the error, never raised.

regenerate() (SQLite):
  - Idempotent: a second run replaces the first run's rows.
  - Rows keep the classified order.

SnapshotLockRegistry:
  - One lock per snapshot id; held for the duration of ``hold()``.

Concurrent generation (on-disk SQLite):
  - Eight threads regenerating one snapshot all succeed and leave exactly
    one run's rows behind.
"""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path

from upgrade_engine.config import AppConfig
from upgrade_engine.db.connection import config_connection
from upgrade_engine.db.repositories.snapshot_repo import (
    RecommendationRepository,
    SnapshotRepository,
)
from upgrade_engine.models.catalog import CatalogMatch
from upgrade_engine.models.finding import ClassifiedFinding
from upgrade_engine.models.meta import RunMetadata
from upgrade_engine.models.recommendation import NO_MATCH_CODE, NO_MATCH_MESSAGE
from upgrade_engine.pipeline.generate import GenerateRecommendationsStage
from upgrade_engine.recommendations.persister import (
    SnapshotLockRegistry,
    build_rows,
    persist,
    regenerate,
)
from upgrade_engine.taxonomy.upgrade_taxonomy import LeadClass, Section

SAMPLE_FINDINGS_FILE = Path(__file__).parents[2] / "config" / "findings" / "sample_findings.csv"


# ── Helpers ────────────────────────────────────────────────────────────────────

def _match(item_id: str = "attic-insulation-blown") -> CatalogMatch:
    return CatalogMatch(
        id=item_id,
        display_name="Blown-in Attic Insulation",
        feature_key="attic_insulation",
        lead_class=LeadClass.SERVICE,
    )


def _classified(matches: tuple[CatalogMatch, ...] = (), feature_key: str = "attic_insulation"):
    return ClassifiedFinding(
        section=Section.PRIORITY,
        feature_key=feature_key,
        intent_key="increase_r_value",
        lead_class=LeadClass.SERVICE,
        confidence=0.95,
        candidate_matches=matches,
        raw_feature="Attic Insulation",
        raw_condition="R-19",
        raw_recommendation="Insulate to R-49",
    )


class FakeSnapshots:
    def __init__(self, existing: set[str] | None = None, fail: bool = False) -> None:
        self.existing = existing or set()
        self.fail = fail

    def snapshot_exists(self, snapshot_id):
        if self.fail:
            raise sqlite3.OperationalError("database is locked")
        return snapshot_id in self.existing


class FakeRecommendationStore:
    def __init__(self, fail_delete: bool = False, fail_insert: bool = False) -> None:
        self.rows: list = []
        self.fail_delete = fail_delete
        self.fail_insert = fail_insert
        self.delete_calls = 0
        self.insert_calls = 0

    def delete_for_snapshot(self, snapshot_id):
        self.delete_calls += 1
        if self.fail_delete:
            raise sqlite3.OperationalError("delete failed")
        before = len(self.rows)
        self.rows = [r for r in self.rows if r.snapshot_id != snapshot_id]
        return before - len(self.rows)

    def insert_many(self, recs):
        self.insert_calls += 1
        if self.fail_insert:
            raise sqlite3.IntegrityError("insert failed")
        self.rows.extend(recs)
        return len(recs)

    def list_for_snapshot(self, snapshot_id):
        return [r for r in self.rows if r.snapshot_id == snapshot_id]


class TestBuildRows:
    def test_chosen_row(self):
        rows = build_rows("snap-1", "job-1", [_classified((_match("a"), _match("b")))])
        assert len(rows) == 1
        row = rows[0]
        assert row.catalog_item_id == "a"
        assert row.chosen is True
        assert row.error_code is None
        assert row.job_id == "job-1"
        assert row.raw_condition == "R-19"

    def test_no_match_row(self):
        row = build_rows("snap-1", None, [_classified(feature_key="wall_insulation")])[0]
        assert row.chosen is False
        assert row.catalog_item_id is None
        assert row.error_code == NO_MATCH_CODE
        assert row.error_message == NO_MATCH_MESSAGE


class TestPersist:
    def test_missing_snapshot(self):
        store = FakeRecommendationStore()
        result = persist(FakeSnapshots(), store, "snap-x", None, [_classified((_match(),))])
        assert result.ok is False
        assert "snap-x" in result.error
        assert store.delete_calls == 0 and store.insert_calls == 0

    def test_blank_snapshot_id(self):
        result = persist(FakeSnapshots({"  "}), FakeRecommendationStore(), "  ", None, [])
        assert result.ok is False

    def test_snapshot_lookup_failure(self):
        result = persist(FakeSnapshots(fail=True), FakeRecommendationStore(), "s", None, [])
        assert result.ok is False
        assert "locked" in result.error

    def test_empty_input_writes_nothing(self):
        store = FakeRecommendationStore()
        store.insert_many(build_rows("snap-1", None, [_classified((_match(),))]))
        result = persist(FakeSnapshots({"snap-1"}), store, "snap-1", None, [])
        assert (result.ok, result.inserted, result.deleted) == (True, 0, 0)
        assert len(store.rows) == 1
        assert store.delete_calls == 0

    def test_inserts_with_no_match(self):
        store = FakeRecommendationStore()
        result = persist(
            FakeSnapshots({"snap-1"}), store, "snap-1", "job-1",
            [_classified((_match(),)), _classified(feature_key="wall_insulation")],
        )
        assert (result.ok, result.inserted) == (True, 2)
        assert [r.chosen for r in store.rows] == [True, False]

    def test_delete_failure_is_non_fatal(self):
        store = FakeRecommendationStore(fail_delete=True)
        result = persist(FakeSnapshots({"snap-1"}), store, "snap-1", None, [_classified((_match(),))])
        assert result.ok is True
        assert (result.inserted, result.deleted) == (1, 0)
        assert store.insert_calls == 1

    def test_insert_failure_returned_not_raised(self):
        store = FakeRecommendationStore(fail_insert=True)
        result = persist(FakeSnapshots({"snap-1"}), store, "snap-1", None, [_classified((_match(),))])
        assert result.ok is False
        assert result.inserted == 0
        assert "insert failed" in result.error


class TestRegenerateSqlite:
    def test_idempotent_replace(self, in_memory_db, sample_snapshot):
        SnapshotRepository(in_memory_db).upsert(sample_snapshot)
        snapshots = SnapshotRepository(in_memory_db)
        recs = RecommendationRepository(in_memory_db)
        classified = [_classified((_match("a"),)), _classified((_match("b"),))]

        first = regenerate(snapshots, recs, "snap-001", "job-42", classified)
        second = regenerate(snapshots, recs, "snap-001", "job-42", classified)

        assert (first.inserted, first.deleted) == (2, 0)
        assert (second.inserted, second.deleted) == (2, 2)
        assert recs.count_for_snapshot("snap-001") == 2
        assert [r.catalog_item_id for r in recs.list_for_snapshot("snap-001")] == ["a", "b"]

    def test_missing_snapshot_in_db(self, in_memory_db):
        result = regenerate(
            SnapshotRepository(in_memory_db),
            RecommendationRepository(in_memory_db),
            "ghost",
            None,
            [_classified((_match(),))],
        )
        assert result.ok is False
        assert RecommendationRepository(in_memory_db).count_for_snapshot("ghost") == 0


class TestSnapshotLockRegistry:
    def test_same_snapshot_same_lock(self):
        locks = SnapshotLockRegistry()
        assert locks.lock_for("a") is locks.lock_for("a")
        assert locks.lock_for("a") is not locks.lock_for("b")

    def test_hold_acquires_and_releases(self):
        locks = SnapshotLockRegistry()
        with locks.hold("a"):
            assert locks.lock_for("a").locked()
            assert not locks.lock_for("b").locked()
        assert not locks.lock_for("a").locked()

    def test_regenerate_releases_lock(self):
        locks = SnapshotLockRegistry()
        regenerate(FakeSnapshots(), FakeRecommendationStore(), "snap-1", None, [], locks=locks)
        assert not locks.lock_for("snap-1").locked()


# ── Concurrent generation ──────────────────────────────────────────────────────

class TestConcurrentGeneration:
    def test_parallel_runs_leave_one_set(self, engine_config: AppConfig):
        locks = SnapshotLockRegistry()
        stages = [
            GenerateRecommendationsStage(config=engine_config, locks=locks)
            for _ in range(8)
        ]
        runs: list[RunMetadata] = []
        errors: list[Exception] = []

        def _worker(stage: GenerateRecommendationsStage) -> None:
            try:
                runs.append(
                    stage.run(snapshot_id="snap-001", findings_path=SAMPLE_FINDINGS_FILE)
                )
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=_worker, args=(s,)) for s in stages]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert [r.status for r in runs] == ["success"] * 8
        assert {s.last_result.inserted for s in stages} == {6}
        with config_connection(engine_config.database) as conn:
            count = RecommendationRepository(conn).count_for_snapshot("snap-001")
        assert count == stages[0].last_result.inserted
