"""
Economics calculator: install cost, annual savings, net cost and simple
payback ranges for one card.  Pure functions, no I/O.

Range rules
-----------
  - both bounds missing  → (None, None)
  - one bound missing    → the present bound is used for both
  - min > max            → bounds are swapped

Net cost (V1 policy)
--------------------
Net cost is the normalized install range clamped at 0.  Incentives are
resolved and displayed on the card but are NOT subtracted here; changing
that is a product decision, not an arithmetic one.

Payback
-------
    best case  = net_min / savings_max
    worst case = net_max / savings_min
re-normalized afterwards.  Any missing bound, any savings bound <= 0, or a
non-finite quotient yields (None, None).  Degenerate input is "insufficient
data", never an error.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from upgrade_engine.models.economics import AssumptionRecord

Range = tuple[Optional[float], Optional[float]]


@dataclass(frozen=True)
class Economics:
    """Derived money figures for one card.

    Attributes:
        install_cost_min / install_cost_max: Normalized install range.
        annual_savings_min / annual_savings_max: Normalized savings range.
        net_cost_min / net_cost_max: Install range clamped at 0.
        payback_years_min / payback_years_max: Simple payback range.
        expected_life_years: Passed through from the assumption record.
        roi_ready: ``True`` iff payback, savings and net bounds are all
            present and both savings bounds are strictly positive.
    """

    install_cost_min: Optional[float] = None
    install_cost_max: Optional[float] = None
    annual_savings_min: Optional[float] = None
    annual_savings_max: Optional[float] = None
    net_cost_min: Optional[float] = None
    net_cost_max: Optional[float] = None
    payback_years_min: Optional[float] = None
    payback_years_max: Optional[float] = None
    expected_life_years: Optional[float] = None
    roi_ready: bool = False


EMPTY_ECONOMICS = Economics()


def normalize_range(lo: Optional[float], hi: Optional[float]) -> Range:
    if lo is None and hi is None:
        return (None, None)
    if hi is None:
        return (lo, lo)
    if lo is None:
        return (hi, hi)
    return (lo, hi) if lo <= hi else (hi, lo)


def net_cost_range(install_min: Optional[float], install_max: Optional[float]) -> Range:
    """Normalized install range clamped at 0 (incentives not subtracted)."""
    lo, hi = normalize_range(install_min, install_max)
    return (
        max(lo, 0.0) if lo is not None else None,
        max(hi, 0.0) if hi is not None else None,
    )


def payback_range(
    net_min: Optional[float],
    net_max: Optional[float],
    savings_min: Optional[float],
    savings_max: Optional[float],
) -> Range:
    """Simple payback in years as (best case, worst case)."""
    n_lo, n_hi = normalize_range(net_min, net_max)
    s_lo, s_hi = normalize_range(savings_min, savings_max)

    if n_lo is None or n_hi is None or s_lo is None or s_hi is None:
        return (None, None)
    if s_lo <= 0 or s_hi <= 0:
        return (None, None)

    best = n_lo / s_hi
    worst = n_hi / s_lo
    if not (math.isfinite(best) and math.isfinite(worst)):
        return (None, None)
    return normalize_range(best, worst)


def is_roi_ready(
    net: Range,
    savings: Range,
    payback: Range,
) -> bool:
    if any(v is None for v in (*net, *savings, *payback)):
        return False
    return savings[0] > 0 and savings[1] > 0


def compute_economics_from_ranges(
    install_min: Optional[float],
    install_max: Optional[float],
    savings_min: Optional[float],
    savings_max: Optional[float],
    incentive_total_min: Optional[float] = None,
    incentive_total_max: Optional[float] = None,
    expected_life_years: Optional[float] = None,
) -> Economics:
    """Derive card economics from raw cost and savings bounds.

    Incentive totals are accepted so callers can pass what they resolved,
    but they are not subtracted from net cost (V1 policy, see module notes).
    """
    install = normalize_range(install_min, install_max)
    savings = normalize_range(savings_min, savings_max)
    net = net_cost_range(*install)
    payback = payback_range(net[0], net[1], savings[0], savings[1])

    return Economics(
        install_cost_min=install[0],
        install_cost_max=install[1],
        annual_savings_min=savings[0],
        annual_savings_max=savings[1],
        net_cost_min=net[0],
        net_cost_max=net[1],
        payback_years_min=payback[0],
        payback_years_max=payback[1],
        expected_life_years=expected_life_years,
        roi_ready=is_roi_ready(net, savings, payback),
    )


def compute_economics(record: Optional[AssumptionRecord]) -> Economics:
    """Derive all card economics from the chosen assumption record.

    Args:
        record: Output of ``assumptions.pick_best()``; ``None`` when no
            assumption data is available.

    Returns:
        An ``Economics`` value; all-null and not ROI-ready without a record.
    """
    if record is None:
        return EMPTY_ECONOMICS

    return compute_economics_from_ranges(
        record.install_cost_min,
        record.install_cost_max,
        record.annual_savings_min,
        record.annual_savings_max,
        expected_life_years=record.expected_life_years,
    )
