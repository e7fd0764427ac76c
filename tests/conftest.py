"""
Shared pytest fixtures for the Home Upgrade Engine test suite.

Provides:
  - ``in_memory_db``: A fresh in-memory SQLite connection with the full
    schema applied. Created anew for each test that requests it.
  - ``seeded_db``: ``in_memory_db`` with the bundled reference seed loaded
    (catalog, upgrade types, assumptions, incentive rules).
  - ``file_config`` / ``engine_config``: an on-disk database for pipeline
    stages, bare or fully seeded with the ``snap-001`` snapshot.
  - Sample domain object factories for use in multiple test modules.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Generator

import pytest

from upgrade_engine.config import AppConfig, DatabaseConfig
from upgrade_engine.db.connection import config_connection, configure_connection
from upgrade_engine.db.migrations import run_migrations
from upgrade_engine.db.repositories.snapshot_repo import SnapshotRepository
from upgrade_engine.db.schema import apply_schema
from upgrade_engine.ingestion.reference_loader import load_reference_file
from upgrade_engine.models.catalog import CatalogItem
from upgrade_engine.models.economics import AssumptionRecord, GeoScope, IncentiveRule
from upgrade_engine.models.finding import Finding
from upgrade_engine.models.snapshot import Snapshot
from upgrade_engine.taxonomy.upgrade_taxonomy import IncentiveLevel, LeadClass, Section

PROJECT_ROOT = Path(__file__).parent.parent
SEED_FILE = PROJECT_ROOT / "config" / "reference" / "catalog_seed.json"
SAMPLE_FINDINGS_FILE = PROJECT_ROOT / "config" / "findings" / "sample_findings.csv"


# ── Database fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with the full schema applied.

    Foreign key enforcement is ON. Schema is applied idempotently.
    Connection is closed after the test.
    """
    conn = sqlite3.connect(":memory:")
    configure_connection(conn, wal_mode=False)
    apply_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def seeded_db(in_memory_db: sqlite3.Connection) -> sqlite3.Connection:
    """``in_memory_db`` with ``config/reference/catalog_seed.json`` loaded."""
    load_reference_file(in_memory_db, SEED_FILE)
    in_memory_db.commit()
    return in_memory_db


@pytest.fixture
def file_config(tmp_path: Path) -> AppConfig:
    """``AppConfig`` pointing at a throwaway on-disk DB and output directory.

    Pipeline stages open a new connection per step, so they need a file DB.
    """
    return AppConfig(
        database=DatabaseConfig(db_path=str(tmp_path / "engine.db"), wal_mode=False),
        cards={"output_dir": str(tmp_path / "cards")},
    )


@pytest.fixture
def engine_config(file_config: AppConfig, sample_snapshot: Snapshot) -> AppConfig:
    """``file_config`` with schema, migrations, seed data and one snapshot."""
    with config_connection(file_config.database) as conn:
        apply_schema(conn)
        run_migrations(conn)
        load_reference_file(conn, SEED_FILE)
        SnapshotRepository(conn).upsert(sample_snapshot)
    return file_config


# ── Sample domain object factories ────────────────────────────────────────────

@pytest.fixture
def sample_snapshot() -> Snapshot:
    """A Portland, OR property snapshot."""
    return Snapshot(id="snap-001", job_id="job-42", zip="97201", state="OR")


@pytest.fixture
def sample_findings() -> list[Finding]:
    """A small inspection report: one actionable priority finding, one
    equipment finding and one placeholder."""
    return [
        Finding(
            section=Section.PRIORITY,
            feature_text="Attic Insulation",
            condition_text="R-19",
            recommendation_text="Insulate to R-49",
        ),
        Finding(
            section=Section.ADDITIONAL,
            feature_text="Heating Equipment",
            condition_text="Gas furnace 80% AFUE",
            recommendation_text="Upgrade to ENERGY STAR heat pump",
        ),
        Finding(
            section=Section.ADDITIONAL,
            feature_text="Skylights",
            condition_text="Single pane",
            recommendation_text="—",
        ),
    ]


@pytest.fixture
def sample_catalog_item() -> CatalogItem:
    return CatalogItem(
        id="attic-insulation-blown",
        display_name="Blown-in Attic Insulation",
        description="Top up attic insulation to R-49.",
        feature_key="attic_insulation",
        lead_class=LeadClass.SERVICE,
        intent_keys=frozenset({"increase_r_value", "insulate"}),
        tags=("insulation", "envelope"),
        sort_rank=10,
    )


@pytest.fixture
def sample_assumption() -> AssumptionRecord:
    return AssumptionRecord(
        install_cost_min=1500,
        install_cost_max=3500,
        annual_savings_min=150,
        annual_savings_max=400,
        expected_life_years=30,
        updated_at="2025-06-01T00:00:00Z",
    )


@pytest.fixture
def sample_incentive_rule() -> IncentiveRule:
    """A utility rebate scoped to Oregon and Washington."""
    return IncentiveRule(
        id="pnw-weatherization",
        name="PNW weatherization rebate",
        level=IncentiveLevel.UTILITY,
        amount_min=250,
        amount_max=1000,
        scope=GeoScope(mode="states", values=("OR", "WA")),
        applies_to_tags=frozenset({"insulation"}),
    )
