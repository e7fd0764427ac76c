"""
Cost, savings and incentive models, plus the ``UpgradeCard`` output unit.

``AssumptionRecord`` is one candidate cost/savings estimate for an upgrade
type.  Several may exist per type (different data sources); exactly one is
picked per card by the assumption resolver.  Numeric fields are parsed
strictly: ``None``, empty strings, non-numeric and non-finite values all
become ``None`` (never ``0``), so "missing" is never mistaken for "free".

``IncentiveRule`` is geographically scoped reference data.  ``GeoScope.mode``
is kept as a plain string so rules with an unrecognized mode still load —
the geo-scope matcher fails them closed.

``UpgradeCard`` is built fresh on every request and never persisted.
"""

from __future__ import annotations

import math
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from upgrade_engine.taxonomy.upgrade_taxonomy import AmountUnit, IncentiveLevel


def parse_number(value: Any) -> Optional[float]:
    """Strictly parse a numeric value.

    ``None`` / blank strings / non-numeric / NaN / infinity → ``None``.
    Booleans are rejected (``True`` is not an amount).
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            num = float(text)
        except ValueError:
            return None
    return num if math.isfinite(num) else None


class AssumptionRecord(BaseModel):
    """Candidate cost/savings estimate for an upgrade type.

    Attributes:
        install_cost_min / install_cost_max: Installed cost range (USD).
        annual_savings_min / annual_savings_max: Annual savings range (USD/yr).
        expected_life_years: Expected service life, if known.
        updated_at: Raw timestamp string from the source; may be unparsable.
        source: Optional data-source label (audit only).
    """

    model_config = ConfigDict(frozen=True)

    install_cost_min: Optional[float] = None
    install_cost_max: Optional[float] = None
    annual_savings_min: Optional[float] = None
    annual_savings_max: Optional[float] = None
    expected_life_years: Optional[float] = None
    updated_at: Optional[str] = None
    source: Optional[str] = None

    @field_validator(
        "install_cost_min", "install_cost_max",
        "annual_savings_min", "annual_savings_max",
        "expected_life_years",
        mode="before",
    )
    @classmethod
    def coerce_number(cls, v: Any) -> Optional[float]:
        return parse_number(v)

    @field_validator("updated_at", mode="before")
    @classmethod
    def coerce_timestamp(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        if hasattr(v, "isoformat"):
            return v.isoformat()
        return str(v)


class GeoScope(BaseModel):
    """Geographic targeting of an incentive rule.

    Attributes:
        mode: ``all``, ``states``, ``zips`` or ``prefixes`` (see ``ScopeMode``).
            Other strings are accepted and never match.
        values: State codes, ZIPs or ZIP prefixes depending on ``mode``.
    """

    model_config = ConfigDict(frozen=True)

    mode: str = "all"
    values: tuple[str, ...] = ()

    @field_validator("values", mode="before")
    @classmethod
    def coerce_values(cls, v: Any) -> tuple[str, ...]:
        if v is None:
            return ()
        if isinstance(v, str):
            v = v.split(",")
        return tuple(str(x) for x in v if x is not None)


class Location(BaseModel):
    """Property location used for incentive targeting."""

    model_config = ConfigDict(frozen=True)

    zip: Optional[str] = None
    state: Optional[str] = None


class IncentiveRule(BaseModel):
    """A geographically scoped financial incentive.

    A flat amount may be supplied as ``amount``; it populates both bounds.

    Attributes:
        id: Stable rule identifier.
        name: Program name.
        level: Sponsor level.
        amount_min / amount_max: Amount range, ``None`` when unknown.
        amount_unit: Only ``usd`` amounts count towards card totals.
        scope: Geographic targeting.
        applies_to_catalog_ids: Catalog item ids the rule applies to.
        applies_to_tags: Catalog tags the rule applies to.
        applies_to_upgrade_types: Upgrade-type keys (``heating``, ``insulation``…).
        url: Program link.
        notes: Free-form notes.
        is_active: Inactive rules are never resolved.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    level: IncentiveLevel = IncentiveLevel.OTHER
    amount_min: Optional[float] = None
    amount_max: Optional[float] = None
    amount_unit: AmountUnit = AmountUnit.USD
    scope: GeoScope = GeoScope()
    applies_to_catalog_ids: frozenset[str] = frozenset()
    applies_to_tags: frozenset[str] = frozenset()
    applies_to_upgrade_types: frozenset[str] = frozenset()
    url: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool = True

    @model_validator(mode="before")
    @classmethod
    def expand_flat_amount(cls, data: Any) -> Any:
        if isinstance(data, dict) and "amount" in data:
            data = dict(data)
            flat = data.pop("amount")
            data.setdefault("amount_min", flat)
            data.setdefault("amount_max", flat)
        return data

    @field_validator("amount_min", "amount_max", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> Optional[float]:
        return parse_number(v)


class ResolvedIncentive(BaseModel):
    """An incentive attached to a card for display."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    level: IncentiveLevel
    amount_min: Optional[float] = None
    amount_max: Optional[float] = None
    amount_unit: AmountUnit = AmountUnit.USD
    url: Optional[str] = None
    notes: Optional[str] = None
    reasons: tuple[str, ...] = ()
    disclaimer: Optional[str] = None


class UpgradeCard(BaseModel):
    """Final, ranked, presentation-ready recommendation unit.

    V1 policy: ``net_cost_*`` and ``payback_years_*`` are computed from the
    install-cost range alone.  Incentives are resolved and shown alongside
    (``incentives`` and ``incentive_total_*``) but are not subtracted.
    """

    model_config = ConfigDict(frozen=True)

    title: str
    display_name: Optional[str] = None
    feature_key: Optional[str] = None
    catalog_item_id: str

    install_cost_min: Optional[float] = None
    install_cost_max: Optional[float] = None
    annual_savings_min: Optional[float] = None
    annual_savings_max: Optional[float] = None
    expected_life_years: Optional[float] = None

    incentives: tuple[ResolvedIncentive, ...] = ()
    incentive_total_min: Optional[float] = None
    incentive_total_max: Optional[float] = None

    net_cost_min: Optional[float] = None
    net_cost_max: Optional[float] = None
    payback_years_min: Optional[float] = None
    payback_years_max: Optional[float] = None

    roi_ready: bool = False

    bullets: tuple[str, ...] = ()
    notes: Optional[str] = None
    tags: tuple[str, ...] = ()
