"""
Incentive resolution for upgrade cards.

A rule is attached to a card when it is active, its ``GeoScope`` covers the
property location, and it applies to the card through at least one of:

  - the card's catalog item id      (``applies_to_catalog_ids``)
  - any of the card's catalog tags  (``applies_to_tags``)
  - the card's upgrade-type key     (``applies_to_upgrade_types``)

Upgrade-type keys are coarse buckets (``heating``, ``insulation``, ...)
derived from the card's feature key and names by ``map_upgrade_to_type_key``.

Totals sum only USD-denominated bounds; with no USD bound present the total
is ``None`` rather than ``0``.  Incentives are displayed only; net cost and
payback ignore them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from upgrade_engine.models.economics import IncentiveRule, Location, ResolvedIncentive
from upgrade_engine.recommendations.geo_scope import matches
from upgrade_engine.taxonomy.upgrade_taxonomy import AmountUnit

_AC_WORD_RE = re.compile(r"\bac\b")

# Ordered; first match wins.
_TYPE_KEY_RULES: list[tuple[tuple[str, ...], str]] = [
    (("air seal", "air sealing"), "air_sealing"),
    (("attic", "insulation"), "insulation"),
    (("water heater",), "water_heating"),
    (("heat pump", "heating"), "heating"),
    (("air conditioner", "cooling"), "cooling"),
    (("duct",), "ducts"),
    (("window",), "windows"),
    (("solar",), "solar"),
]


def map_upgrade_to_type_key(
    feature_key: Optional[str] = None,
    intent_key: Optional[str] = None,
    title: Optional[str] = None,
    display_name: Optional[str] = None,
) -> Optional[str]:
    """Coarse upgrade-type bucket for incentive matching.

    Feature keys are read with underscores as spaces, so ``water_heater``
    matches the ``water heater`` rule.  ``ac`` only counts as a whole word
    (``replace`` is not cooling).

    Returns:
        A type key, ``"other"`` when nothing matches, or ``None`` when every
        input is empty.
    """
    blob = " ".join(
        (part or "") for part in (feature_key, intent_key, title, display_name)
    ).replace("_", " ").lower().strip()
    if not blob:
        return None

    for needles, key in _TYPE_KEY_RULES:
        if any(n in blob for n in needles):
            return key
        if key == "cooling" and _AC_WORD_RE.search(blob):
            return key
    return "other"


@dataclass(frozen=True)
class IncentiveTarget:
    """What an incentive rule is matched against for one card."""

    catalog_item_id: str
    tags: tuple[str, ...] = ()
    upgrade_type_key: Optional[str] = None


@dataclass(frozen=True)
class IncentiveResolution:
    """Incentives attached to one card plus their USD totals."""

    incentives: tuple[ResolvedIncentive, ...] = ()
    total_min: Optional[float] = None
    total_max: Optional[float] = None


EMPTY_RESOLUTION = IncentiveResolution()


def applicability_reasons(rule: IncentiveRule, target: IncentiveTarget) -> list[str]:
    """Why ``rule`` applies to ``target``; empty when it does not."""
    reasons: list[str] = []
    if target.catalog_item_id in rule.applies_to_catalog_ids:
        reasons.append("CATALOG_ITEM_MATCH")
    shared_tags = sorted(set(target.tags) & rule.applies_to_tags)
    if shared_tags:
        reasons.append("TAG_MATCH:" + ",".join(shared_tags))
    if target.upgrade_type_key and target.upgrade_type_key in rule.applies_to_upgrade_types:
        reasons.append(f"UPGRADE_TYPE_MATCH:{target.upgrade_type_key}")
    return reasons


def sum_usd(incentives: Iterable[ResolvedIncentive]) -> tuple[Optional[float], Optional[float]]:
    """Sum USD bounds separately; a side with no USD values totals ``None``."""
    usd = [i for i in incentives if i.amount_unit == AmountUnit.USD]
    mins = [i.amount_min for i in usd if i.amount_min is not None]
    maxs = [i.amount_max for i in usd if i.amount_max is not None]
    return (
        sum(mins) if mins else None,
        sum(maxs) if maxs else None,
    )


def resolve_incentives(
    rules: Sequence[IncentiveRule],
    target: IncentiveTarget,
    location: Location,
    disclaimer: Optional[str] = None,
) -> IncentiveResolution:
    """Attach every applicable rule to one card.

    Args:
        rules: Candidate rules (inactive ones are ignored).
        target: The card's catalog id, tags and upgrade-type key.
        location: Property ZIP and state.
        disclaimer: Short disclaimer copied onto each resolved incentive.

    Returns:
        Resolved incentives in rule order with USD totals.
    """
    resolved: list[ResolvedIncentive] = []
    for rule in rules:
        if not rule.is_active or not matches(rule.scope, location):
            continue
        reasons = applicability_reasons(rule, target)
        if not reasons:
            continue
        resolved.append(
            ResolvedIncentive(
                id=rule.id,
                name=rule.name,
                level=rule.level,
                amount_min=rule.amount_min,
                amount_max=rule.amount_max,
                amount_unit=rule.amount_unit,
                url=rule.url,
                notes=rule.notes,
                reasons=(f"GEO_MATCH:{rule.scope.mode}", *reasons),
                disclaimer=disclaimer,
            )
        )

    total_min, total_max = sum_usd(resolved)
    return IncentiveResolution(
        incentives=tuple(resolved),
        total_min=total_min,
        total_max=total_max,
    )
