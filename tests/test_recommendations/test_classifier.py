"""
Tests for upgrade_engine/recommendations/classifier.py.

What we test
------------
feature_key_for():
  - Rule-table features map to their canonical key (case / whitespace
    insensitive).
  - First match wins: "Foundation wall insulation" → wall_insulation.
  - Unknown features fall back to a text slug.

intent_key_for():
  - Every intent rule, including two-group rules.
  - Placeholder text → none; unmatched text → other.

confidence_for():
  - Base, priority, actionable and HVAC/DHW bonuses; clamped to 1.0.

rank_candidates():
  - Intent-matching items first, stable otherwise; capped at 5.

classify() / classify_batch():
  - Non-actionable findings return None without touching the catalog.
  - Catalog queried with (feature_key, lead_class, query limit).
  - Batch order: priority → additional, equipment → service, confidence desc.
"""

from __future__ import annotations

import pytest

from upgrade_engine.errors import LookupFailedError
from upgrade_engine.models.catalog import CatalogItem
from upgrade_engine.models.finding import ClassifiedFinding, Finding
from upgrade_engine.recommendations.classifier import (
    classify,
    classify_batch,
    confidence_for,
    feature_key_for,
    intent_key_for,
    is_actionable,
    lead_class_for,
    normalize_text,
    rank_candidates,
    sort_classified,
)
from upgrade_engine.taxonomy.upgrade_taxonomy import LeadClass, Section


# ── Helpers ────────────────────────────────────────────────────────────────────

def _item(
    item_id: str,
    intents: set[str] | None = None,
    feature_key: str = "attic_insulation",
    lead_class: LeadClass = LeadClass.SERVICE,
) -> CatalogItem:
    return CatalogItem(
        id=item_id,
        display_name=item_id.replace("-", " ").title(),
        feature_key=feature_key,
        lead_class=lead_class,
        intent_keys=frozenset(intents or set()),
    )


class FakeCatalog:
    """In-memory CatalogSource that records every query."""

    def __init__(self, items: list[CatalogItem] | None = None, fail: bool = False) -> None:
        self.items = items or []
        self.fail = fail
        self.calls: list[tuple[str, str, int]] = []

    def find_candidates(self, feature_key, lead_class, limit):
        self.calls.append((feature_key, str(lead_class), limit))
        if self.fail:
            raise LookupFailedError("catalog", "connection reset")
        matching = [
            i for i in self.items
            if i.feature_key == feature_key and i.lead_class == lead_class
        ]
        return matching[:limit]

    def get_by_ids(self, ids):
        return {i.id: i for i in self.items if i.id in set(ids)}


def _classified(
    section: Section,
    lead_class: LeadClass,
    confidence: float,
    feature_key: str = "x",
) -> ClassifiedFinding:
    return ClassifiedFinding(
        section=section,
        feature_key=feature_key,
        intent_key="upgrade",
        lead_class=lead_class,
        confidence=confidence,
    )


# ── Text rules ────────────────────────────────────────────────────────────────

class TestNormalizeText:
    def test_collapses_whitespace_and_lowercases(self):
        assert normalize_text("  Attic \t  Insulation\n") == "attic insulation"

    def test_none_is_empty(self):
        assert normalize_text(None) == ""

    @pytest.mark.parametrize("text", ["", "   ", "—", "N/A", " n/a "])
    def test_placeholders_not_actionable(self, text):
        assert is_actionable(text) is False

    def test_real_text_is_actionable(self):
        assert is_actionable("Seal ducts") is True


class TestFeatureKey:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("Air Conditioner", "air_conditioner"),
            ("Heating Equipment", "heating_equipment"),
            ("Water Heater", "water_heater"),
            ("Solar PV", "solar_pv"),
            ("Envelope/Air Sealing", "envelope_air_sealing"),
            ("Air sealing", "envelope_air_sealing"),
            ("Duct Sealing", "duct_sealing"),
            ("Duct Insulation", "duct_insulation"),
            ("  ATTIC   insulation ", "attic_insulation"),
            ("Wall Insulation", "wall_insulation"),
            ("Floor Insulation", "floor_insulation"),
            ("Cathedral Ceiling/Roof", "cathedral_ceiling_roof"),
            ("Windows", "windows"),
            ("Skylights", "skylights"),
        ],
    )
    def test_rule_table(self, text, expected):
        assert feature_key_for(text) == expected

    def test_first_match_wins_for_nested_wall_rules(self):
        assert feature_key_for("Foundation Wall Insulation") == "wall_insulation"
        assert feature_key_for("Basement wall insulation") == "wall_insulation"
        assert feature_key_for("Knee Wall Insulation") == "wall_insulation"

    def test_unknown_feature_slugged(self):
        assert feature_key_for("Pool Pump (variable-speed)") == "pool_pump_variable_speed"

    def test_empty_feature(self):
        assert feature_key_for(None) == ""


class TestIntentKey:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("Professionally air seal", "air_seal_professional"),
            ("Reduce leakage to 5 ACH50", "reduce_leakage"),
            ("Insulate to R-49", "increase_r_value"),
            ("When replacing, upgrade to an ENERGY STAR model", "upgrade_when_replacing_energy_star"),
            ("Upgrade to ENERGY STAR heat pump", "upgrade_energy_star"),
            ("Replace with an ENERGY STAR unit", "upgrade_energy_star"),
            ("Consider adding 4.5 kW DC capacity", "add_solar"),
            ("Seal duct joints with mastic", "seal"),
            ("Insulate basement walls", "insulate"),
            ("Replace", "replace"),
            ("Upgrade when possible", "upgrade"),
            ("Reduce setpoint at night", "reduce"),
        ],
    )
    def test_rule_table(self, text, expected):
        assert intent_key_for(text) == expected

    def test_energy_star_alone_is_not_upgrade_energy_star(self):
        # Needs "upgrade" or "replace" alongside "energy star".
        assert intent_key_for("Look for ENERGY STAR labels") == "other"

    def test_capacity_without_kw_is_not_solar(self):
        assert intent_key_for("Check capacity") == "other"

    @pytest.mark.parametrize("text", ["", None, "—", "N/A"])
    def test_placeholder_is_none(self, text):
        assert intent_key_for(text) == "none"

    def test_unmatched_is_other(self):
        assert intent_key_for("Monitor annually") == "other"


class TestLeadClassAndConfidence:
    @pytest.mark.parametrize(
        "feature_key", ["air_conditioner", "heating_equipment", "water_heater", "solar_pv"]
    )
    def test_equipment_features(self, feature_key):
        assert lead_class_for(feature_key) == LeadClass.EQUIPMENT

    def test_everything_else_is_service(self):
        assert lead_class_for("attic_insulation") == LeadClass.SERVICE
        assert lead_class_for("pool_pump") == LeadClass.SERVICE

    def test_priority_actionable(self):
        assert confidence_for(Section.PRIORITY, "attic_insulation", "increase_r_value") == 0.95

    def test_additional_actionable(self):
        assert confidence_for(Section.ADDITIONAL, "attic_insulation", "increase_r_value") == 0.7

    def test_base_only(self):
        assert confidence_for(Section.ADDITIONAL, "windows", "other") == 0.6

    def test_hvac_bonus_without_actionable_intent(self):
        assert confidence_for(Section.ADDITIONAL, "water_heater", "other") == 0.65

    def test_all_bonuses_clamped_to_one(self):
        assert confidence_for(Section.PRIORITY, "heating_equipment", "upgrade") == 1.0

    def test_solar_gets_no_hvac_bonus(self):
        assert confidence_for(Section.ADDITIONAL, "solar_pv", "add_solar") == 0.7


# ── Catalog matching ──────────────────────────────────────────────────────────

class TestRankCandidates:
    def test_intent_matches_first_and_stable(self):
        items = [_item("a", {"seal"}), _item("b", {"insulate"}), _item("c", {"insulate"})]
        ranked = rank_candidates(items, "insulate")
        assert [m.id for m in ranked] == ["b", "c", "a"]

    def test_no_intent_match_keeps_order(self):
        items = [_item("a"), _item("b")]
        assert [m.id for m in rank_candidates(items, "replace")] == ["a", "b"]

    def test_capped_at_five(self):
        items = [_item(f"i{n}") for n in range(8)]
        assert len(rank_candidates(items, "insulate", max_candidates=10)) == 5

    def test_max_candidates_respected(self):
        items = [_item(f"i{n}") for n in range(8)]
        assert len(rank_candidates(items, "insulate", max_candidates=2)) == 2


class TestClassify:
    def test_attic_priority_finding(self):
        catalog = FakeCatalog([
            _item("attic-pkg", {"insulate"}),
            _item("attic-blown", {"increase_r_value"}),
        ])
        finding = Finding(
            section=Section.PRIORITY,
            feature_text="Attic Insulation",
            condition_text="R-19",
            recommendation_text="Insulate to R-49",
        )
        result = classify(finding, catalog)

        assert result is not None
        assert result.feature_key == "attic_insulation"
        assert result.intent_key == "increase_r_value"
        assert result.lead_class == LeadClass.SERVICE
        assert result.confidence == 0.95
        assert [m.id for m in result.candidate_matches] == ["attic-blown", "attic-pkg"]
        assert result.raw_condition == "R-19"

    def test_queries_catalog_with_limit(self):
        catalog = FakeCatalog()
        finding = Finding(feature_text="Water Heater", recommendation_text="Replace")
        classify(finding, catalog, catalog_query_limit=3)
        assert catalog.calls == [("water_heater", "equipment", 3)]

    def test_no_candidates_still_classified(self):
        result = classify(
            Finding(feature_text="Wall Insulation", recommendation_text="Insulate"),
            FakeCatalog(),
        )
        assert result is not None
        assert result.candidate_matches == ()

    @pytest.mark.parametrize("text", ["", "—", "n/a"])
    def test_non_actionable_skips_catalog(self, text):
        catalog = FakeCatalog()
        finding = Finding(feature_text="Skylights", recommendation_text=text)
        assert classify(finding, catalog) is None
        assert catalog.calls == []

    def test_catalog_failure_propagates(self):
        finding = Finding(feature_text="Attic insulation", recommendation_text="Insulate")
        with pytest.raises(LookupFailedError):
            classify(finding, FakeCatalog(fail=True))


class TestBatchOrdering:
    def test_sort_classified(self):
        rows = [
            _classified(Section.ADDITIONAL, LeadClass.SERVICE, 0.9, "a"),
            _classified(Section.ADDITIONAL, LeadClass.EQUIPMENT, 0.7, "b"),
            _classified(Section.PRIORITY, LeadClass.SERVICE, 0.95, "c"),
            _classified(Section.ADDITIONAL, LeadClass.EQUIPMENT, 0.75, "d"),
            _classified(Section.PRIORITY, LeadClass.EQUIPMENT, 0.85, "e"),
        ]
        assert [c.feature_key for c in sort_classified(rows)] == ["e", "c", "d", "b", "a"]

    def test_full_ties_keep_input_order(self):
        rows = [
            _classified(Section.PRIORITY, LeadClass.SERVICE, 0.95, "first"),
            _classified(Section.PRIORITY, LeadClass.SERVICE, 0.95, "second"),
        ]
        assert [c.feature_key for c in sort_classified(rows)] == ["first", "second"]

    def test_batch_drops_placeholders_and_sorts(self, sample_findings):
        result = classify_batch(sample_findings, FakeCatalog())
        assert [c.feature_key for c in result] == ["attic_insulation", "heating_equipment"]
        assert [c.confidence for c in result] == [0.95, 0.75]

    def test_empty_batch(self):
        assert classify_batch([], FakeCatalog()) == []
