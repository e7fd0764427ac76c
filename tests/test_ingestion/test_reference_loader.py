"""
Tests for upgrade_engine/ingestion/reference_loader.py.

What we test
------------
parse_reference():
  - ``applies_to`` object expands onto the rule's applies_to_* fields.
  - Flat ``amount`` fills both bounds.
  - Duplicate / missing ids and bad shapes raise ValueError.

load_reference():
  - Bundled seed loads with the expected counts and is idempotent.
  - Unknown catalog ids in an upgrade-type mapping raise ValueError.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from upgrade_engine.db.repositories.assumption_repo import AssumptionRepository
from upgrade_engine.db.repositories.catalog_repo import CatalogRepository
from upgrade_engine.db.repositories.incentive_repo import IncentiveRuleRepository
from upgrade_engine.ingestion.reference_loader import (
    load_reference,
    load_reference_file,
    parse_reference,
    read_reference_file,
)

SEED_FILE = Path(__file__).parents[2] / "config" / "reference" / "catalog_seed.json"


# ── Helpers ────────────────────────────────────────────────────────────────────

def _payload(**overrides) -> dict:
    payload = {
        "catalog_items": [
            {
                "id": "duct-sealing",
                "display_name": "Duct Sealing",
                "feature_key": "duct_sealing",
                "lead_class": "service",
                "intent_keys": ["seal"],
                "tags": ["ducts"],
            }
        ],
        "upgrade_types": [
            {
                "id": "ut-ducts",
                "name": "Ducts",
                "type_key": "ducts",
                "catalog_item_ids": ["duct-sealing"],
                "assumptions": [{"install_cost_min": 400, "install_cost_max": "900"}],
            }
        ],
        "incentive_rules": [
            {
                "id": "r1",
                "name": "Duct rebate",
                "amount": 200,
                "scope": {"mode": "states", "values": ["OR"]},
                "applies_to": {"tags": ["ducts"], "upgrade_types": ["ducts"]},
            }
        ],
    }
    payload.update(overrides)
    return payload


class TestParseReference:
    def test_applies_to_expanded(self):
        data = parse_reference(_payload())
        rule = data.incentive_rules[0]
        assert rule.applies_to_tags == frozenset({"ducts"})
        assert rule.applies_to_upgrade_types == frozenset({"ducts"})
        assert rule.applies_to_catalog_ids == frozenset()
        assert (rule.amount_min, rule.amount_max) == (200.0, 200.0)
        assert rule.scope.values == ("OR",)

    def test_assumption_numbers_coerced(self):
        data = parse_reference(_payload())
        record = data.upgrade_types[0].assumptions[0]
        assert record.install_cost_max == 900.0
        assert record.annual_savings_min is None

    def test_duplicate_ids(self):
        items = _payload()["catalog_items"] * 2
        with pytest.raises(ValueError, match="Duplicate"):
            parse_reference(_payload(catalog_items=items))

    def test_missing_id(self):
        with pytest.raises(ValueError, match="missing 'id'"):
            parse_reference(_payload(incentive_rules=[{"name": "No id"}]))

    def test_bad_section_shape(self):
        with pytest.raises(ValueError, match="list of objects"):
            parse_reference(_payload(upgrade_types={"id": "x"}))

    def test_invalid_model(self):
        bad_item = dict(_payload()["catalog_items"][0], lead_class="gadget")
        with pytest.raises(ValueError, match="validation"):
            parse_reference(_payload(catalog_items=[bad_item]))

    def test_not_an_object(self):
        with pytest.raises(ValueError):
            parse_reference([])  # type: ignore[arg-type]


class TestLoadReference:
    def test_bundled_seed_counts(self, in_memory_db):
        counts = load_reference_file(in_memory_db, SEED_FILE)
        assert counts.catalog_items == 9
        assert counts.upgrade_types == 5
        assert counts.mappings == 7
        assert counts.assumptions == 5
        assert counts.incentive_rules == 5

    def test_reload_is_idempotent(self, in_memory_db):
        load_reference_file(in_memory_db, SEED_FILE)
        load_reference_file(in_memory_db, SEED_FILE)
        assert len(IncentiveRuleRepository(in_memory_db).list_active()) == 5
        assert len(AssumptionRepository(in_memory_db).assumptions_for("ut-heat-pump")) == 2
        assert AssumptionRepository(in_memory_db).upgrade_type_ids_for(
            "attic-air-seal-and-insulate"
        ) == ["ut-air-sealing", "ut-attic-insulation"]

    def test_seeded_catalog_queryable(self, in_memory_db):
        load_reference_file(in_memory_db, SEED_FILE)
        found = CatalogRepository(in_memory_db).find_candidates("attic_insulation", "service", 8)
        assert [i.id for i in found] == ["attic-insulation-blown", "attic-air-seal-and-insulate"]

    def test_unknown_catalog_mapping(self, in_memory_db):
        types = _payload()["upgrade_types"]
        types[0]["catalog_item_ids"] = ["duct-sealing", "ghost-item"]
        with pytest.raises(ValueError, match="ghost-item"):
            load_reference(in_memory_db, parse_reference(_payload(upgrade_types=types)))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_reference_file(tmp_path / "seed.json")
