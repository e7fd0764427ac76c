"""
Card assembler and ranker: builds presentation-ready ``UpgradeCard`` objects
for a snapshot from its persisted recommendations.

Assembly flow
-------------
1. Load the snapshot's recommendations in persisted order.  Only rows with a
   chosen catalog item become cards (one card per row); none → ``[]``.
2. Fetch catalog display metadata for the chosen items.
3. Resolve assumptions through catalog item → upgrade types → records and
   pick one with ``pick_best``.  A failed lookup degrades that card to null
   economics.
4. Compute economics (net cost and payback ignore incentives).
5. Resolve incentives for the property location.  A failed lookup degrades
   the cards to "no incentives shown".
6. Rank with ``rank_cards``.

Cards are rebuilt on every request and never persisted.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Mapping, Optional, Sequence

from upgrade_engine.models.catalog import CatalogItem
from upgrade_engine.models.economics import (
    AssumptionRecord,
    IncentiveRule,
    Location,
    UpgradeCard,
)
from upgrade_engine.models.recommendation import Recommendation
from upgrade_engine.recommendations.assumptions import pick_best
from upgrade_engine.recommendations.economics import EMPTY_ECONOMICS, Economics, compute_economics
from upgrade_engine.recommendations.geo_scope import state_for_zip
from upgrade_engine.recommendations.incentives import (
    EMPTY_RESOLUTION,
    IncentiveResolution,
    IncentiveTarget,
    map_upgrade_to_type_key,
    resolve_incentives,
)
from upgrade_engine.recommendations.sources import (
    AssumptionSource,
    CatalogSource,
    IncentiveSource,
    RecommendationStore,
)
from upgrade_engine.utils.logging import snapshot_logger

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Upgrade"


# ── Ranking ────────────────────────────────────────────────────────────────────


def _payback_sort_value(card: UpgradeCard) -> float:
    if card.payback_years_min is not None:
        return card.payback_years_min
    if card.payback_years_max is not None:
        return card.payback_years_max
    return math.inf


def rank_cards(cards: Sequence[UpgradeCard]) -> list[UpgradeCard]:
    """ROI-ready cards first, then shortest payback.

    Payback uses ``payback_years_min``, falling back to ``payback_years_max``
    and then +infinity.  The sort is stable, so ties keep input order.
    """
    return sorted(cards, key=lambda c: (0 if c.roi_ready else 1, _payback_sort_value(c)))


# ── Lookups ────────────────────────────────────────────────────────────────────


def resolve_location(zip_code: Optional[str], regions: Optional[Mapping[str, Any]]) -> Location:
    """Location for incentive targeting.

    The state comes from ``regions["state"]`` when supplied, else it is
    derived from the ZIP prefix.
    """
    zip_clean = (zip_code or "").strip() or None
    state = None
    if regions:
        state = str(regions.get("state") or "").strip().upper() or None
    if state is None:
        state = state_for_zip(zip_clean)
    return Location(zip=zip_clean, state=state)


def load_assumption(
    assumptions: AssumptionSource,
    catalog_item_id: str,
) -> Optional[AssumptionRecord]:
    """Best assumption across every upgrade type mapped to the item.

    Lookup failures are logged and treated as "no assumption data".
    """
    try:
        records: list[AssumptionRecord] = []
        for type_id in assumptions.upgrade_type_ids_for(catalog_item_id):
            records.extend(assumptions.assumptions_for(type_id))
    except Exception as exc:
        logger.warning(
            "Assumption lookup failed for catalog item %s: %s", catalog_item_id, exc
        )
        return None
    return pick_best(records)


def load_incentive_rules(incentives: Optional[IncentiveSource]) -> list[IncentiveRule]:
    if incentives is None:
        return []
    try:
        return incentives.list_active()
    except Exception as exc:
        logger.warning("Incentive lookup failed; cards will show no incentives: %s", exc)
        return []


def _bullets(rec: Recommendation) -> tuple[str, ...]:
    bullets: list[str] = []
    recommendation = rec.raw_recommendation.strip()
    condition = rec.raw_condition.strip()
    if recommendation:
        bullets.append(recommendation)
    if condition:
        bullets.append(f"Current condition: {condition}")
    return tuple(bullets)


# ── Assembly ───────────────────────────────────────────────────────────────────


def assemble_card(
    rec: Recommendation,
    item: Optional[CatalogItem],
    economics: Economics,
    incentives: IncentiveResolution,
) -> UpgradeCard:
    """Combine one recommendation row with its looked-up data."""
    display_name = item.display_name.strip() if item else ""
    description = (item.description or "").strip() if item else ""
    return UpgradeCard(
        title=display_name or DEFAULT_TITLE,
        display_name=display_name or None,
        feature_key=(item.feature_key if item else rec.feature_key) or None,
        catalog_item_id=str(rec.catalog_item_id),
        install_cost_min=economics.install_cost_min,
        install_cost_max=economics.install_cost_max,
        annual_savings_min=economics.annual_savings_min,
        annual_savings_max=economics.annual_savings_max,
        expected_life_years=economics.expected_life_years,
        incentives=incentives.incentives,
        incentive_total_min=incentives.total_min,
        incentive_total_max=incentives.total_max,
        net_cost_min=economics.net_cost_min,
        net_cost_max=economics.net_cost_max,
        payback_years_min=economics.payback_years_min,
        payback_years_max=economics.payback_years_max,
        roi_ready=economics.roi_ready,
        bullets=_bullets(rec),
        notes=description or None,
        tags=item.tags if item else (),
    )


def build_cards(
    snapshot_id: str,
    zip_code: Optional[str],
    regions: Optional[Mapping[str, Any]],
    *,
    recommendations: RecommendationStore,
    catalog: CatalogSource,
    assumptions: AssumptionSource,
    incentives: Optional[IncentiveSource] = None,
    disclaimer: Optional[str] = None,
) -> list[UpgradeCard]:
    """Build ranked upgrade cards for a snapshot.

    Args:
        snapshot_id: Snapshot whose persisted recommendations drive the cards.
        zip_code: Property ZIP for incentive targeting.
        regions: Optional region hints; ``regions["state"]`` overrides the
            state derived from the ZIP.
        recommendations: Persisted recommendation rows.
        catalog: Catalog metadata lookup.
        assumptions: Upgrade-type and assumption lookup.
        incentives: Incentive rules; ``None`` disables incentive resolution.
        disclaimer: Disclaimer copied onto each resolved incentive.

    Returns:
        Ranked cards; empty when the snapshot has no chosen recommendations.

    Raises:
        LookupFailedError: If the recommendation or catalog lookup fails.
    """
    log = snapshot_logger(logger, snapshot_id)
    recs = [r for r in recommendations.list_for_snapshot(snapshot_id) if r.catalog_item_id]
    if not recs:
        log.info("No chosen recommendations; no cards.")
        return []

    catalog_ids = list(dict.fromkeys(str(r.catalog_item_id) for r in recs))
    items = catalog.get_by_ids(catalog_ids)
    missing = [cid for cid in catalog_ids if cid not in items]
    if missing:
        log.warning("Catalog items not found: %s", missing)

    economics_by_id: dict[str, Economics] = {}
    for cid in catalog_ids:
        record = load_assumption(assumptions, cid)
        economics_by_id[cid] = compute_economics(record) if record else EMPTY_ECONOMICS

    location = resolve_location(zip_code, regions)
    rules = load_incentive_rules(incentives)

    cards: list[UpgradeCard] = []
    for rec in recs:
        cid = str(rec.catalog_item_id)
        item = items.get(cid)
        resolution = EMPTY_RESOLUTION
        if rules:
            target = IncentiveTarget(
                catalog_item_id=cid,
                tags=item.tags if item else (),
                upgrade_type_key=map_upgrade_to_type_key(
                    feature_key=item.feature_key if item else rec.feature_key,
                    title=item.display_name if item else None,
                    display_name=item.display_name if item else None,
                ),
            )
            try:
                resolution = resolve_incentives(rules, target, location, disclaimer)
            except Exception as exc:
                log.warning("Incentive resolution failed for catalog item %s: %s", cid, exc)
        cards.append(assemble_card(rec, item, economics_by_id[cid], resolution))

    ranked = rank_cards(cards)
    log.info(
        "Built %d card(s) (%d ROI-ready)",
        len(ranked), sum(1 for c in ranked if c.roi_ready),
    )
    return ranked
