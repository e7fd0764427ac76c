"""
Reference data loader: JSON seed → SQLite.

Responsibilities
----------------
Load ``config/reference/catalog_seed.json`` (or any file of the same shape)
and upsert catalog items, upgrade types with their catalog mappings and
assumption records, and incentive rules.

Seed shape
----------
    {
      "catalog_items":   [{"id", "display_name", "feature_key", "lead_class",
                           "description"?, "intent_keys"?, "tags"?,
                           "sort_rank"?, "is_active"?}],
      "upgrade_types":   [{"id", "name", "type_key"?,
                           "catalog_item_ids": [...],
                           "assumptions": [{"install_cost_min", ...}]}],
      "incentive_rules": [{"id", "name", "level"?, "amount"? | "amount_min"?,
                           "amount_max"?, "amount_unit"?,
                           "scope": {"mode", "values"},
                           "applies_to": {"catalog_ids", "tags", "upgrade_types"},
                           "url"?, "notes"?, "is_active"?}]
    }

Validation rules
----------------
- Duplicate ids within a section are rejected.
- ``catalog_item_ids`` in upgrade types must reference catalog items in the
  same file or already in the database.
- Every record is validated before anything is written.

Assumption records for an upgrade type are replaced as a set, so reloading
the same file is idempotent.

Usage
-----
    from upgrade_engine.ingestion.reference_loader import load_reference_file

    counts = load_reference_file(conn, Path("config/reference/catalog_seed.json"))
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from upgrade_engine.db.repositories.assumption_repo import AssumptionRepository
from upgrade_engine.db.repositories.catalog_repo import CatalogRepository
from upgrade_engine.db.repositories.incentive_repo import IncentiveRuleRepository
from upgrade_engine.models.catalog import CatalogItem
from upgrade_engine.models.economics import AssumptionRecord, IncentiveRule

logger = logging.getLogger(__name__)


@dataclass
class UpgradeTypeSeed:
    """One validated upgrade type with its mappings and assumption records."""

    id: str
    name: str
    type_key: str | None = None
    catalog_item_ids: list[str] = field(default_factory=list)
    assumptions: list[AssumptionRecord] = field(default_factory=list)


@dataclass
class ReferenceData:
    """Validated contents of a reference seed file."""

    catalog_items: list[CatalogItem] = field(default_factory=list)
    upgrade_types: list[UpgradeTypeSeed] = field(default_factory=list)
    incentive_rules: list[IncentiveRule] = field(default_factory=list)


@dataclass
class LoadCounts:
    catalog_items: int = 0
    upgrade_types: int = 0
    mappings: int = 0
    assumptions: int = 0
    incentive_rules: int = 0


# ── Parsing / validation ─────────────────────────────────────────────────────

def _check_unique(records: list[dict[str, Any]], section: str) -> None:
    seen: set[str] = set()
    for i, rec in enumerate(records):
        rid = str(rec.get("id") or "").strip()
        if not rid:
            raise ValueError(f"{section}[{i}] is missing 'id'.")
        if rid in seen:
            raise ValueError(f"Duplicate {section} id '{rid}' at index {i}.")
        seen.add(rid)


def _section(payload: dict[str, Any], key: str) -> list[dict[str, Any]]:
    records = payload.get(key) or []
    if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
        raise ValueError(f"'{key}' must be a list of objects.")
    return records


def _incentive_rule(rec: dict[str, Any]) -> IncentiveRule:
    data = dict(rec)
    applies_to = data.pop("applies_to", None) or {}
    data.setdefault("applies_to_catalog_ids", applies_to.get("catalog_ids", []))
    data.setdefault("applies_to_tags", applies_to.get("tags", []))
    data.setdefault("applies_to_upgrade_types", applies_to.get("upgrade_types", []))
    return IncentiveRule.model_validate(data)


def parse_reference(payload: dict[str, Any]) -> ReferenceData:
    """Validate a decoded seed payload.

    Raises:
        ValueError: On duplicate ids, bad shapes or model validation errors.
    """
    if not isinstance(payload, dict):
        raise ValueError("Reference seed must be a JSON object.")

    items_raw = _section(payload, "catalog_items")
    types_raw = _section(payload, "upgrade_types")
    rules_raw = _section(payload, "incentive_rules")
    _check_unique(items_raw, "catalog_items")
    _check_unique(types_raw, "upgrade_types")
    _check_unique(rules_raw, "incentive_rules")

    try:
        items = [CatalogItem.model_validate(r) for r in items_raw]
        types = [
            UpgradeTypeSeed(
                id=str(r["id"]).strip(),
                name=str(r.get("name") or r["id"]),
                type_key=r.get("type_key"),
                catalog_item_ids=[str(c) for c in r.get("catalog_item_ids") or []],
                assumptions=[
                    AssumptionRecord.model_validate(a) for a in r.get("assumptions") or []
                ],
            )
            for r in types_raw
        ]
        rules = [_incentive_rule(r) for r in rules_raw]
    except ValidationError as exc:
        raise ValueError(f"Reference seed failed validation:\n{exc}") from exc

    return ReferenceData(catalog_items=items, upgrade_types=types, incentive_rules=rules)


def read_reference_file(path: Path) -> ReferenceData:
    """Read and validate a JSON seed file.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: On malformed JSON or validation errors.
    """
    if not path.exists():
        raise FileNotFoundError(f"Reference seed file not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Malformed JSON in {path.name}: {exc}") from exc
    return parse_reference(payload)


# ── Persistence ──────────────────────────────────────────────────────────────

def load_reference(conn: sqlite3.Connection, data: ReferenceData) -> LoadCounts:
    """Upsert validated reference data.  Does not commit.

    Raises:
        ValueError: If an upgrade type maps to an unknown catalog item.
    """
    catalog = CatalogRepository(conn)
    assumptions = AssumptionRepository(conn)
    incentives = IncentiveRuleRepository(conn)
    counts = LoadCounts()

    for item in data.catalog_items:
        catalog.upsert(item)
        counts.catalog_items += 1

    wanted = {cid for t in data.upgrade_types for cid in t.catalog_item_ids}
    known = set(catalog.get_by_ids(wanted))
    unknown = sorted(wanted - known)
    if unknown:
        raise ValueError(f"Upgrade types reference unknown catalog items: {unknown}")

    for ut in data.upgrade_types:
        assumptions.upsert_upgrade_type(ut.id, ut.name, ut.type_key)
        for cid in ut.catalog_item_ids:
            assumptions.link_catalog_item(cid, ut.id)
            counts.mappings += 1
        counts.assumptions += assumptions.replace_assumptions(ut.id, ut.assumptions)
        counts.upgrade_types += 1

    for rule in data.incentive_rules:
        incentives.upsert(rule)
        counts.incentive_rules += 1

    logger.info(
        "Reference loaded: %d catalog items, %d upgrade types (%d mappings, "
        "%d assumptions), %d incentive rules",
        counts.catalog_items, counts.upgrade_types, counts.mappings,
        counts.assumptions, counts.incentive_rules,
    )
    return counts


def load_reference_file(conn: sqlite3.Connection, path: Path) -> LoadCounts:
    """Read, validate and upsert a reference seed file."""
    return load_reference(conn, read_reference_file(path))
