"""
Incentive geographic targeting.

``matches(scope, location)`` decides whether an incentive rule's geographic
scope covers a property.  It is pure and never raises: malformed scopes and
unknown modes fail closed (``False``).

``state_for_zip(zip_code)`` derives a USPS state code from the 3-digit ZIP
prefix so ``states``-scoped rules can be resolved when the caller supplies
only a ZIP.  The prefix table is approximate (a handful of prefixes straddle
state lines) and is only a fallback for an explicit state.
"""

from __future__ import annotations

from typing import Optional

from upgrade_engine.models.economics import GeoScope, Location
from upgrade_engine.taxonomy.upgrade_taxonomy import ScopeMode

# Inclusive ZIP3 ranges → state.  Unlisted prefixes map to None.
_ZIP3_RANGES: list[tuple[int, int, str]] = [
    (5, 5, "NY"),
    (6, 9, "PR"),
    (10, 27, "MA"),
    (28, 29, "RI"),
    (30, 38, "NH"),
    (39, 49, "ME"),
    (50, 59, "VT"),
    (60, 69, "CT"),
    (70, 89, "NJ"),
    (100, 149, "NY"),
    (150, 196, "PA"),
    (197, 199, "DE"),
    (200, 205, "DC"),
    (206, 219, "MD"),
    (220, 246, "VA"),
    (247, 268, "WV"),
    (270, 289, "NC"),
    (290, 299, "SC"),
    (300, 319, "GA"),
    (320, 349, "FL"),
    (350, 369, "AL"),
    (370, 385, "TN"),
    (386, 397, "MS"),
    (398, 399, "GA"),
    (400, 427, "KY"),
    (430, 459, "OH"),
    (460, 479, "IN"),
    (480, 499, "MI"),
    (500, 528, "IA"),
    (530, 549, "WI"),
    (550, 567, "MN"),
    (570, 577, "SD"),
    (580, 588, "ND"),
    (590, 599, "MT"),
    (600, 629, "IL"),
    (630, 658, "MO"),
    (660, 679, "KS"),
    (680, 693, "NE"),
    (700, 715, "LA"),
    (716, 729, "AR"),
    (730, 749, "OK"),
    (750, 799, "TX"),
    (800, 816, "CO"),
    (820, 831, "WY"),
    (832, 838, "ID"),
    (840, 847, "UT"),
    (850, 865, "AZ"),
    (870, 884, "NM"),
    (885, 885, "TX"),
    (889, 898, "NV"),
    (900, 961, "CA"),
    (967, 968, "HI"),
    (969, 969, "GU"),
    (970, 979, "OR"),
    (980, 994, "WA"),
    (995, 999, "AK"),
]


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def matches(scope: Optional[GeoScope], location: Location) -> bool:
    """Return whether ``scope`` covers ``location``.

    Modes:
      - ``all``      — always ``True``.
      - ``states``   — case-insensitive state membership; ``False`` without a state.
      - ``zips``     — exact ZIP membership (trimmed); ``False`` without a ZIP.
      - ``prefixes`` — ZIP starts with any non-empty prefix; ``False`` without a ZIP.

    Any other mode (or a missing scope) returns ``False``.
    """
    if scope is None:
        return False

    mode = _clean(scope.mode).lower()
    values = [_clean(v) for v in scope.values]

    if mode == ScopeMode.ALL:
        return True

    if mode == ScopeMode.STATES:
        state = _clean(location.state).upper()
        if not state:
            return False
        return state in {v.upper() for v in values if v}

    zip_code = _clean(location.zip)

    if mode == ScopeMode.ZIPS:
        if not zip_code:
            return False
        return zip_code in {v for v in values if v}

    if mode == ScopeMode.PREFIXES:
        if not zip_code:
            return False
        return any(zip_code.startswith(p) for p in values if p)

    return False


def state_for_zip(zip_code: Optional[str]) -> Optional[str]:
    """Approximate USPS state for a ZIP code from its 3-digit prefix.

    Args:
        zip_code: 5-digit or ZIP+4 string; surrounding whitespace ignored.

    Returns:
        Two-letter state code, or ``None`` if the ZIP is missing, malformed
        or its prefix is unassigned.
    """
    text = _clean(zip_code)
    if len(text) < 3 or not text[:3].isdigit():
        return None
    prefix = int(text[:3])
    for lo, hi, state in _ZIP3_RANGES:
        if lo <= prefix <= hi:
            return state
    return None
