"""
Upgrade card report writer: CSV, JSON and Parquet output.

All functions are pure I/O — no DB access.  They consume ranked
``UpgradeCard`` lists and write human-readable + machine-readable files.

Output files (written by BuildCardsStage)
-----------------------------------------
  data/outputs/cards/
    cards_{snapshot_id}_{date}.csv      -- one row per card, rank order
    cards_{snapshot_id}_{date}.json     -- full cards incl. incentives
    cards_{snapshot_id}_{date}.parquet  -- flat columns for analysis
"""

from __future__ import annotations

import csv
import json
import logging
import re
from datetime import date
from pathlib import Path

import pyarrow as pa
import pyarrow.parquet as pq

from upgrade_engine.models.economics import UpgradeCard

logger = logging.getLogger(__name__)

_SAFE_NAME_RE = re.compile(r"[^A-Za-z0-9_.-]+")

_CARDS_PA_SCHEMA = pa.schema([
    pa.field("rank",                pa.int32(),   nullable=False),
    pa.field("catalog_item_id",     pa.string(),  nullable=False),
    pa.field("title",               pa.string(),  nullable=False),
    pa.field("feature_key",         pa.string()),
    pa.field("install_cost_min",    pa.float64()),
    pa.field("install_cost_max",    pa.float64()),
    pa.field("annual_savings_min",  pa.float64()),
    pa.field("annual_savings_max",  pa.float64()),
    pa.field("net_cost_min",        pa.float64()),
    pa.field("net_cost_max",        pa.float64()),
    pa.field("payback_years_min",   pa.float64()),
    pa.field("payback_years_max",   pa.float64()),
    pa.field("incentive_total_min", pa.float64()),
    pa.field("incentive_total_max", pa.float64()),
    pa.field("incentive_count",     pa.int32(),   nullable=False),
    pa.field("roi_ready",           pa.bool_(),   nullable=False),
    pa.field("tags",                pa.list_(pa.string())),
])

_CSV_FIELDS = [
    "rank", "catalog_item_id", "title", "feature_key",
    "install_cost_min", "install_cost_max",
    "annual_savings_min", "annual_savings_max",
    "net_cost_min", "net_cost_max",
    "payback_years_min", "payback_years_max",
    "incentive_total_min", "incentive_total_max",
    "roi_ready", "incentives", "bullets",
]


def _file_stem(snapshot_id: str, run_date: date | None) -> str:
    if run_date is None:
        run_date = date.today()
    return f"cards_{_SAFE_NAME_RE.sub('_', snapshot_id)}_{run_date}"


def _fmt(value: float | None) -> str:
    return "" if value is None else f"{value:.2f}"


def write_cards_csv(
    cards: list[UpgradeCard],
    output_dir: Path,
    snapshot_id: str,
    run_date: date | None = None,
) -> Path:
    """Write ranked cards to a CSV file.

    Multi-valued fields (incentive names, bullets) are joined with ``"; "``.

    Args:
        cards:       Ranked cards.
        output_dir:  Directory to write the file (created if missing).
        snapshot_id: Used in the filename.
        run_date:    Date label for the filename. Defaults to today.

    Returns:
        Path to the written CSV file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    csv_path = output_dir / f"{_file_stem(snapshot_id, run_date)}.csv"

    with csv_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=_CSV_FIELDS)
        writer.writeheader()
        for rank, card in enumerate(cards, start=1):
            writer.writerow(
                {
                    "rank":                rank,
                    "catalog_item_id":     card.catalog_item_id,
                    "title":               card.title,
                    "feature_key":         card.feature_key or "",
                    "install_cost_min":    _fmt(card.install_cost_min),
                    "install_cost_max":    _fmt(card.install_cost_max),
                    "annual_savings_min":  _fmt(card.annual_savings_min),
                    "annual_savings_max":  _fmt(card.annual_savings_max),
                    "net_cost_min":        _fmt(card.net_cost_min),
                    "net_cost_max":        _fmt(card.net_cost_max),
                    "payback_years_min":   _fmt(card.payback_years_min),
                    "payback_years_max":   _fmt(card.payback_years_max),
                    "incentive_total_min": _fmt(card.incentive_total_min),
                    "incentive_total_max": _fmt(card.incentive_total_max),
                    "roi_ready":           card.roi_ready,
                    "incentives":          "; ".join(i.name for i in card.incentives),
                    "bullets":             "; ".join(card.bullets),
                }
            )

    logger.info("Card CSV written: %s (%d rows)", csv_path, len(cards))
    return csv_path


def write_cards_json(
    cards: list[UpgradeCard],
    output_dir: Path,
    snapshot_id: str,
    run_date: date | None = None,
    run_slug: str = "",
) -> Path:
    """Write ranked cards to a structured JSON file.

    Args:
        cards:       Ranked cards.
        output_dir:  Target directory.
        snapshot_id: Used in filename + metadata.
        run_date:    Date label. Defaults to today.
        run_slug:    Pipeline run UUID for provenance.

    Returns:
        Path to the written JSON file.
    """
    if run_date is None:
        run_date = date.today()

    output_dir.mkdir(parents=True, exist_ok=True)
    json_path = output_dir / f"{_file_stem(snapshot_id, run_date)}.json"

    payload = {
        "schema_version": "v1",
        "snapshot_id":    snapshot_id,
        "generated_at":   run_date.isoformat(),
        "run_slug":       run_slug,
        "card_count":     len(cards),
        "cards": [
            {"rank": rank, **card.model_dump(mode="json")}
            for rank, card in enumerate(cards, start=1)
        ],
    }

    json_path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
    logger.info("Card JSON written: %s", json_path)
    return json_path


def build_cards_table(cards: list[UpgradeCard]) -> pa.Table:
    """Flatten cards into a ``pa.Table`` matching ``_CARDS_PA_SCHEMA``."""
    def col(name: str) -> list:
        return [getattr(c, name) for c in cards]

    return pa.table(
        {
            "rank":                pa.array(list(range(1, len(cards) + 1)), type=pa.int32()),
            "catalog_item_id":     pa.array(col("catalog_item_id"),     type=pa.string()),
            "title":               pa.array(col("title"),               type=pa.string()),
            "feature_key":         pa.array(col("feature_key"),         type=pa.string()),
            "install_cost_min":    pa.array(col("install_cost_min"),    type=pa.float64()),
            "install_cost_max":    pa.array(col("install_cost_max"),    type=pa.float64()),
            "annual_savings_min":  pa.array(col("annual_savings_min"),  type=pa.float64()),
            "annual_savings_max":  pa.array(col("annual_savings_max"),  type=pa.float64()),
            "net_cost_min":        pa.array(col("net_cost_min"),        type=pa.float64()),
            "net_cost_max":        pa.array(col("net_cost_max"),        type=pa.float64()),
            "payback_years_min":   pa.array(col("payback_years_min"),   type=pa.float64()),
            "payback_years_max":   pa.array(col("payback_years_max"),   type=pa.float64()),
            "incentive_total_min": pa.array(col("incentive_total_min"), type=pa.float64()),
            "incentive_total_max": pa.array(col("incentive_total_max"), type=pa.float64()),
            "incentive_count":     pa.array([len(c.incentives) for c in cards], type=pa.int32()),
            "roi_ready":           pa.array(col("roi_ready"),           type=pa.bool_()),
            "tags":                pa.array([list(c.tags) for c in cards], type=pa.list_(pa.string())),
        },
        schema=_CARDS_PA_SCHEMA,
    )


def write_cards_parquet(
    cards: list[UpgradeCard],
    output_dir: Path,
    snapshot_id: str,
    run_date: date | None = None,
) -> Path:
    """Write ranked cards to a snappy-compressed Parquet file."""
    output_dir.mkdir(parents=True, exist_ok=True)
    out_path = output_dir / f"{_file_stem(snapshot_id, run_date)}.parquet"
    pq.write_table(build_cards_table(cards), out_path, compression="snappy")
    logger.info("Card Parquet written: %s (%d rows)", out_path, len(cards))
    return out_path
