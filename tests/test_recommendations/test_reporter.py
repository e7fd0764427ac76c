"""
Tests for upgrade_engine/recommendations/reporter.py.

What we test
------------
  - CSV: header + one row per card in rank order; blanks for missing numbers.
  - JSON: metadata block, 1-based ranks, nested incentives.
  - Parquet: schema matches ``_CARDS_PA_SCHEMA``; empty input writes 0 rows.
  - Unsafe characters in snapshot ids are replaced in filenames.
"""

from __future__ import annotations

import csv
import json
from datetime import date

import pyarrow.parquet as pq

from upgrade_engine.models.economics import ResolvedIncentive, UpgradeCard
from upgrade_engine.recommendations.reporter import (
    _CARDS_PA_SCHEMA,
    build_cards_table,
    write_cards_csv,
    write_cards_json,
    write_cards_parquet,
)
from upgrade_engine.taxonomy.upgrade_taxonomy import IncentiveLevel

RUN_DATE = date(2025, 10, 1)


# ── Helpers ────────────────────────────────────────────────────────────────────

def _cards() -> list[UpgradeCard]:
    return [
        UpgradeCard(
            title="Whole-Home Air Sealing",
            catalog_item_id="envelope-air-sealing",
            feature_key="envelope_air_sealing",
            install_cost_min=600,
            install_cost_max=2000,
            annual_savings_min=100,
            annual_savings_max=300,
            net_cost_min=600,
            net_cost_max=2000,
            payback_years_min=2.0,
            payback_years_max=20.0,
            roi_ready=True,
            incentives=(
                ResolvedIncentive(
                    id="pnw",
                    name="PNW weatherization rebate",
                    level=IncentiveLevel.UTILITY,
                    amount_min=250,
                    amount_max=1000,
                ),
            ),
            incentive_total_min=250,
            incentive_total_max=1000,
            bullets=("Professionally air seal", "Current condition: Leaky"),
            tags=("air_sealing", "envelope"),
        ),
        UpgradeCard(title="Rooftop Solar PV", catalog_item_id="rooftop-solar"),
    ]


class TestCsv:
    def test_rows_in_rank_order(self, tmp_path):
        path = write_cards_csv(_cards(), tmp_path, "snap-001", RUN_DATE)
        assert path.name == "cards_snap-001_2025-10-01.csv"

        with path.open(encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert [r["rank"] for r in rows] == ["1", "2"]
        assert rows[0]["payback_years_min"] == "2.00"
        assert rows[0]["incentives"] == "PNW weatherization rebate"
        assert rows[0]["bullets"] == "Professionally air seal; Current condition: Leaky"
        assert rows[1]["install_cost_min"] == ""
        assert rows[1]["roi_ready"] == "False"

    def test_unsafe_snapshot_id(self, tmp_path):
        path = write_cards_csv([], tmp_path / "nested", "job 7/snap:1", RUN_DATE)
        assert path.name == "cards_job_7_snap_1_2025-10-01.csv"
        assert path.exists()


class TestJson:
    def test_payload(self, tmp_path):
        path = write_cards_json(_cards(), tmp_path, "snap-001", RUN_DATE, run_slug="abc")
        payload = json.loads(path.read_text(encoding="utf-8"))

        assert payload["snapshot_id"] == "snap-001"
        assert payload["run_slug"] == "abc"
        assert payload["card_count"] == 2
        assert payload["generated_at"] == "2025-10-01"
        first = payload["cards"][0]
        assert first["rank"] == 1
        assert first["incentives"][0]["level"] == "utility"
        assert payload["cards"][1]["payback_years_min"] is None


class TestParquet:
    def test_round_trip_schema(self, tmp_path):
        path = write_cards_parquet(_cards(), tmp_path, "snap-001", RUN_DATE)
        table = pq.read_table(path)
        assert table.num_rows == 2
        assert table.schema.names == _CARDS_PA_SCHEMA.names
        assert table.column("incentive_count").to_pylist() == [1, 0]
        assert table.column("tags").to_pylist() == [["air_sealing", "envelope"], []]

    def test_empty_table(self):
        table = build_cards_table([])
        assert table.num_rows == 0
        assert table.schema.equals(_CARDS_PA_SCHEMA)
