"""
Assumption resolver: chooses the single most complete, most recent
cost/savings record for a card.

Preference order (each step only breaks ties left by the previous one):
  1. ``filled``        — number of non-null range fields (0–4), more is better.
  2. install range     — both install bounds present beats a partial range.
  3. savings range     — both savings bounds present beats a partial range.
  4. ``updated_at``    — more recent wins; unparsable or missing counts as 0.

Full ties keep the earliest candidate (stable first-wins).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from upgrade_engine.models.economics import AssumptionRecord
from upgrade_engine.utils.time_utils import parse_epoch_ms


@dataclass(frozen=True)
class AssumptionRank:
    """Comparable completeness/recency key for an ``AssumptionRecord``."""

    filled: int
    has_install_both: int
    has_savings_both: int
    updated_ms: float

    def as_tuple(self) -> tuple[int, int, int, float]:
        return (self.filled, self.has_install_both, self.has_savings_both, self.updated_ms)


def rank_assumption(record: AssumptionRecord) -> AssumptionRank:
    ic = (record.install_cost_min, record.install_cost_max)
    sv = (record.annual_savings_min, record.annual_savings_max)
    return AssumptionRank(
        filled=sum(1 for v in (*ic, *sv) if v is not None),
        has_install_both=int(all(v is not None for v in ic)),
        has_savings_both=int(all(v is not None for v in sv)),
        updated_ms=parse_epoch_ms(record.updated_at),
    )


def pick_best(candidates: Sequence[AssumptionRecord]) -> Optional[AssumptionRecord]:
    """Pick the preferred assumption record.

    Args:
        candidates: Candidate records in source order.

    Returns:
        The winning record, or ``None`` when there are no candidates.
    """
    best: Optional[AssumptionRecord] = None
    best_key: Optional[tuple[int, int, int, float]] = None
    for record in candidates:
        key = rank_assumption(record).as_tuple()
        # Strictly greater only: earlier candidates win full ties.
        if best_key is None or key > best_key:
            best, best_key = record, key
    return best
