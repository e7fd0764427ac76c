"""
Finding classifier: maps raw inspection text to canonical feature/intent
keys, a lead class, a confidence score and ranked catalog candidates.

Rule tables (first match wins)
------------------------------
Both tables are ordered lists; order is the tie-break policy.  A feature
such as "Foundation wall insulation" contains "wall insulation" and so
resolves to ``wall_insulation``: the broader rule sits earlier in the table.

  feature rules : any listed substring of the normalized feature text.
                  No match → slug of the text (non-alphanumerics → ``_``).
  intent rules  : every group must contribute one substring of the
                  normalized recommendation text.  No match → ``other``.
                  Empty / ``—`` / ``n/a`` recommendation → ``none`` (skipped).

Confidence heuristic
--------------------
    0.60  base
  + 0.25  finding listed in the priority section
  + 0.10  actionable intent (not ``other`` / ``none``)
  + 0.05  HVAC or water-heater feature
  clamped to [0, 1].

Catalog candidates
------------------
Active catalog items for (feature_key, lead_class), ordered by sort_rank
(unranked last) then display_name, fetched up to ``catalog_query_limit``.
Items listing the finding's intent come first (stable), and the result is
truncated to ``max_candidates``.
"""

from __future__ import annotations

import logging
import re

from upgrade_engine.models.catalog import CatalogItem, CatalogMatch
from upgrade_engine.models.finding import MAX_CANDIDATE_MATCHES, ClassifiedFinding, Finding
from upgrade_engine.recommendations.sources import CatalogSource
from upgrade_engine.taxonomy.upgrade_taxonomy import (
    EQUIPMENT_FEATURE_KEYS,
    HVAC_DHW_FEATURE_KEYS,
    NON_ACTIONABLE_INTENTS,
    FeatureKey,
    IntentKey,
    LeadClass,
    Section,
)

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_QUERY_LIMIT = 8

_BASE_CONFIDENCE = 0.60
_PRIORITY_BONUS = 0.25
_ACTIONABLE_INTENT_BONUS = 0.10
_HVAC_DHW_BONUS = 0.05

_PLACEHOLDER_TEXT = frozenset({"", "—", "n/a"})

_WHITESPACE_RE = re.compile(r"\s+")
_SLUG_RE = re.compile(r"[^a-z0-9]+")

# (any-of substrings, feature key)
_FEATURE_RULES: list[tuple[tuple[str, ...], str]] = [
    (("air conditioner",), FeatureKey.AIR_CONDITIONER),
    (("heating equipment",), FeatureKey.HEATING_EQUIPMENT),
    (("water heater",), FeatureKey.WATER_HEATER),
    (("solar pv",), FeatureKey.SOLAR_PV),
    (("envelope", "air sealing"), FeatureKey.ENVELOPE_AIR_SEALING),
    (("duct sealing",), FeatureKey.DUCT_SEALING),
    (("duct insulation",), FeatureKey.DUCT_INSULATION),
    (("attic insulation",), FeatureKey.ATTIC_INSULATION),
    (("wall insulation",), FeatureKey.WALL_INSULATION),
    (("floor insulation",), FeatureKey.FLOOR_INSULATION),
    (("foundation wall insulation",), FeatureKey.FOUNDATION_WALL_INSULATION),
    (("basement wall insulation",), FeatureKey.BASEMENT_WALL_INSULATION),
    (("knee wall insulation",), FeatureKey.KNEE_WALL_INSULATION),
    (("cathedral ceiling/roof",), FeatureKey.CATHEDRAL_CEILING_ROOF),
    (("windows",), FeatureKey.WINDOWS),
    (("skylights",), FeatureKey.SKYLIGHTS),
]

# (required groups, each any-of substrings, intent key)
_INTENT_RULES: list[tuple[tuple[tuple[str, ...], ...], str]] = [
    ((("professionally air seal",),), IntentKey.AIR_SEAL_PROFESSIONAL),
    ((("reduce leakage",),), IntentKey.REDUCE_LEAKAGE),
    ((("insulate to r-",),), IntentKey.INCREASE_R_VALUE),
    ((("when replacing",), ("energy star",)), IntentKey.UPGRADE_WHEN_REPLACING_ENERGY_STAR),
    ((("upgrade", "replace"), ("energy star",)), IntentKey.UPGRADE_ENERGY_STAR),
    ((("capacity",), ("kw",)), IntentKey.ADD_SOLAR),
    ((("seal",),), IntentKey.SEAL),
    ((("insulat",),), IntentKey.INSULATE),
    ((("replace",),), IntentKey.REPLACE),
    ((("upgrade",),), IntentKey.UPGRADE),
    ((("reduce",),), IntentKey.REDUCE),
]

_SECTION_ORDER = {Section.PRIORITY: 0, Section.ADDITIONAL: 1}
_LEAD_CLASS_ORDER = {LeadClass.EQUIPMENT: 0, LeadClass.SERVICE: 1}


# ── Text rules ────────────────────────────────────────────────────────────────


def normalize_text(value: object) -> str:
    """Collapse whitespace runs, trim and lowercase; ``None`` → ``""``."""
    if value is None:
        return ""
    return _WHITESPACE_RE.sub(" ", str(value)).strip().lower()


def is_actionable(recommendation_text: object) -> bool:
    """Return ``False`` for empty or placeholder (``—`` / ``n/a``) text."""
    return normalize_text(recommendation_text) not in _PLACEHOLDER_TEXT


def feature_key_for(feature_text: object) -> str:
    """Canonical feature key for an inspection feature label."""
    text = normalize_text(feature_text)
    for needles, key in _FEATURE_RULES:
        if any(n in text for n in needles):
            return str(key)
    return _SLUG_RE.sub("_", text).strip("_")


def intent_key_for(recommendation_text: object) -> str:
    """Canonical intent key for an inspector recommendation."""
    text = normalize_text(recommendation_text)
    if text in _PLACEHOLDER_TEXT:
        return str(IntentKey.NONE)
    for groups, key in _INTENT_RULES:
        if all(any(n in text for n in group) for group in groups):
            return str(key)
    return str(IntentKey.OTHER)


def lead_class_for(feature_key: str) -> LeadClass:
    if feature_key in EQUIPMENT_FEATURE_KEYS:
        return LeadClass.EQUIPMENT
    return LeadClass.SERVICE


def confidence_for(section: Section, feature_key: str, intent_key: str) -> float:
    """Heuristic confidence in ``[0, 1]`` (see module docstring)."""
    c = _BASE_CONFIDENCE
    if section == Section.PRIORITY:
        c += _PRIORITY_BONUS
    if intent_key not in NON_ACTIONABLE_INTENTS:
        c += _ACTIONABLE_INTENT_BONUS
    if feature_key in HVAC_DHW_FEATURE_KEYS:
        c += _HVAC_DHW_BONUS
    # Rounded so 0.6 + 0.25 reads back as 0.85, not 0.8499999999999999.
    return round(max(0.0, min(1.0, c)), 4)


# ── Catalog matching ──────────────────────────────────────────────────────────


def rank_candidates(
    items: list[CatalogItem],
    intent_key: str,
    max_candidates: int = MAX_CANDIDATE_MATCHES,
) -> list[CatalogMatch]:
    """Intent-preferring stable partition of ``items``, truncated.

    Args:
        items: Catalog items already in sort_rank / display_name order.
        intent_key: The finding's intent.
        max_candidates: Maximum matches returned (capped at 5).

    Returns:
        Lightweight catalog references, preferred items first.
    """
    limit = min(max_candidates, MAX_CANDIDATE_MATCHES)
    preferred = [i for i in items if intent_key in i.intent_keys]
    others = [i for i in items if intent_key not in i.intent_keys]
    return [i.to_match() for i in (preferred + others)[:limit]]


def classify(
    finding: Finding,
    catalog: CatalogSource,
    catalog_query_limit: int = DEFAULT_CATALOG_QUERY_LIMIT,
    max_candidates: int = MAX_CANDIDATE_MATCHES,
) -> ClassifiedFinding | None:
    """Classify one finding and attach ranked catalog candidates.

    Args:
        finding: The raw inspection finding.
        catalog: Catalog lookup.
        catalog_query_limit: Items fetched from the catalog before ranking.
        max_candidates: Candidates kept after ranking.

    Returns:
        The classification, or ``None`` when the finding has no actionable
        recommendation text.

    Raises:
        LookupFailedError: If the catalog lookup fails.
    """
    if not is_actionable(finding.recommendation_text):
        return None

    feature_key = feature_key_for(finding.feature_text)
    intent_key = intent_key_for(finding.recommendation_text)
    if intent_key == IntentKey.NONE:
        return None

    lead_class = lead_class_for(feature_key)
    confidence = confidence_for(finding.section, feature_key, intent_key)

    items = catalog.find_candidates(feature_key, lead_class, catalog_query_limit)
    matches = rank_candidates(items, intent_key, max_candidates)
    if not matches:
        logger.debug(
            "No catalog candidates for feature_key=%s lead_class=%s",
            feature_key, lead_class,
        )

    return ClassifiedFinding(
        section=finding.section,
        feature_key=feature_key,
        intent_key=intent_key,
        lead_class=lead_class,
        confidence=confidence,
        candidate_matches=tuple(matches),
        raw_feature=finding.feature_text,
        raw_condition=finding.condition_text,
        raw_recommendation=finding.recommendation_text,
    )


def sort_classified(classified: list[ClassifiedFinding]) -> list[ClassifiedFinding]:
    """Priority before additional, equipment before service, then
    confidence descending.  Stable for full ties."""
    return sorted(
        classified,
        key=lambda c: (
            _SECTION_ORDER[c.section],
            _LEAD_CLASS_ORDER[c.lead_class],
            -c.confidence,
        ),
    )


def classify_batch(
    findings: list[Finding],
    catalog: CatalogSource,
    catalog_query_limit: int = DEFAULT_CATALOG_QUERY_LIMIT,
    max_candidates: int = MAX_CANDIDATE_MATCHES,
) -> list[ClassifiedFinding]:
    """Classify findings, drop non-actionable ones and sort the batch.

    Returns:
        Classified findings in presentation order (see ``sort_classified``).

    Raises:
        LookupFailedError: If any catalog lookup fails.
    """
    classified: list[ClassifiedFinding] = []
    skipped = 0
    for finding in findings:
        result = classify(finding, catalog, catalog_query_limit, max_candidates)
        if result is None:
            skipped += 1
            continue
        classified.append(result)

    logger.info(
        "Classified %d finding(s); skipped %d non-actionable.",
        len(classified), skipped,
    )
    return sort_classified(classified)
