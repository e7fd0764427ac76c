"""
Tests for upgrade_engine/recommendations/assumptions.py.

What we test
------------
rank_assumption():
  - Counts non-null range fields and flags complete install / savings ranges.
  - Unparsable or missing updated_at ranks as 0.

pick_best():
  - Empty input → None.
  - Completeness beats recency.
  - A complete install range beats a complete savings range at equal fill.
  - Recency breaks remaining ties; parsable dates beat garbage.
  - Full ties keep the first candidate.
  - A complete record wins whatever order the candidates arrive in.
"""

from __future__ import annotations

import itertools

from upgrade_engine.models.economics import AssumptionRecord
from upgrade_engine.recommendations.assumptions import pick_best, rank_assumption


def _rec(**kwargs) -> AssumptionRecord:
    return AssumptionRecord(**kwargs)


class TestRankAssumption:
    def test_full_record(self, sample_assumption):
        rank = rank_assumption(sample_assumption)
        assert rank.filled == 4
        assert rank.has_install_both == 1
        assert rank.has_savings_both == 1
        assert rank.updated_ms > 0

    def test_partial_record(self):
        rank = rank_assumption(_rec(install_cost_min=100, annual_savings_max=10))
        assert rank.as_tuple() == (2, 0, 0, 0.0)

    def test_garbage_timestamp_is_zero(self):
        assert rank_assumption(_rec(updated_at="last spring")).updated_ms == 0.0

    def test_non_numeric_values_are_missing(self):
        rank = rank_assumption(_rec(install_cost_min="abc", install_cost_max="", annual_savings_min="50"))
        assert rank.filled == 1


class TestPickBest:
    def test_empty(self):
        assert pick_best([]) is None

    def test_single(self, sample_assumption):
        assert pick_best([sample_assumption]) is sample_assumption

    def test_completeness_beats_recency(self):
        old_full = _rec(
            install_cost_min=1000, install_cost_max=2000,
            annual_savings_min=100, annual_savings_max=200,
            updated_at="2020-01-01",
        )
        new_partial = _rec(install_cost_min=1200, updated_at="2025-01-01")
        assert pick_best([new_partial, old_full]) is old_full

    def test_install_range_beats_savings_range(self):
        install_complete = _rec(install_cost_min=1, install_cost_max=2, annual_savings_min=3)
        savings_complete = _rec(install_cost_min=1, annual_savings_min=3, annual_savings_max=4)
        assert pick_best([savings_complete, install_complete]) is install_complete

    def test_recency_breaks_ties(self):
        older = _rec(install_cost_min=1, install_cost_max=2, updated_at="2024-01-01T00:00:00Z")
        newer = _rec(install_cost_min=1, install_cost_max=2, updated_at="2025-03-01T00:00:00Z")
        assert pick_best([older, newer]) is newer

    def test_parsable_date_beats_garbage(self):
        garbage = _rec(install_cost_min=1, updated_at="not-a-date")
        dated = _rec(install_cost_min=1, updated_at="1999-12-31")
        assert pick_best([garbage, dated]) is dated

    def test_full_tie_keeps_first(self):
        first = _rec(install_cost_min=1, install_cost_max=2, source="a")
        second = _rec(install_cost_min=1, install_cost_max=2, source="b")
        assert pick_best([first, second]) is first

    def test_complete_wins_in_any_order(self):
        complete = _rec(
            install_cost_min=1000, install_cost_max=2000,
            annual_savings_min=50, annual_savings_max=90,
            source="complete",
        )
        three = _rec(
            install_cost_min=1000, install_cost_max=2000, annual_savings_min=50,
            updated_at="2026-01-01", source="three",
        )
        two = _rec(
            install_cost_min=1000, install_cost_max=2000,
            updated_at="2026-06-01", source="two",
        )
        for order in itertools.permutations([complete, three, two]):
            assert pick_best(list(order)) is complete
