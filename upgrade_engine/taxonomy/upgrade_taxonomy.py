"""
Canonical vocabulary for inspection findings and upgrade recommendations.

Dimensions
----------
  - ``Section``       — which part of the inspection report a finding came from.
  - ``LeadClass``     — equipment (a purchasable unit) vs service (labor work).
  - ``FeatureKey``    — canonical home system / component identifiers.
  - ``IntentKey``     — canonical remedial action identifiers.
  - ``ScopeMode``     — how an incentive rule is geographically targeted.
  - ``IncentiveLevel`` / ``AmountUnit`` — incentive program metadata.

Feature keys not listed in ``FeatureKey`` are still valid: unknown features
fall back to a slug of the inspection text, so ``feature_key`` fields are
typed as plain ``str`` throughout the models.

This module has NO imports from any other ``upgrade_engine`` package.
"""

from enum import StrEnum


class Section(StrEnum):
    """Report section a finding was listed under."""

    PRIORITY = "priority"
    ADDITIONAL = "additional"


class LeadClass(StrEnum):
    """Whether an upgrade is a purchasable unit or labor/sealing work."""

    EQUIPMENT = "equipment"
    SERVICE = "service"


class FeatureKey(StrEnum):
    """Home systems recognized by the classifier rule table."""

    # ── Equipment ─────────────────────────────────────────────────────────────
    AIR_CONDITIONER = "air_conditioner"
    HEATING_EQUIPMENT = "heating_equipment"
    WATER_HEATER = "water_heater"
    SOLAR_PV = "solar_pv"

    # ── Air sealing / distribution ────────────────────────────────────────────
    ENVELOPE_AIR_SEALING = "envelope_air_sealing"
    DUCT_SEALING = "duct_sealing"
    DUCT_INSULATION = "duct_insulation"

    # ── Insulation ────────────────────────────────────────────────────────────
    ATTIC_INSULATION = "attic_insulation"
    WALL_INSULATION = "wall_insulation"
    FLOOR_INSULATION = "floor_insulation"
    FOUNDATION_WALL_INSULATION = "foundation_wall_insulation"
    BASEMENT_WALL_INSULATION = "basement_wall_insulation"
    KNEE_WALL_INSULATION = "knee_wall_insulation"
    CATHEDRAL_CEILING_ROOF = "cathedral_ceiling_roof"

    # ── Fenestration ──────────────────────────────────────────────────────────
    WINDOWS = "windows"
    SKYLIGHTS = "skylights"


class IntentKey(StrEnum):
    """Remedial actions recognized by the intent rule table."""

    AIR_SEAL_PROFESSIONAL = "air_seal_professional"
    REDUCE_LEAKAGE = "reduce_leakage"
    INCREASE_R_VALUE = "increase_r_value"
    UPGRADE_WHEN_REPLACING_ENERGY_STAR = "upgrade_when_replacing_energy_star"
    UPGRADE_ENERGY_STAR = "upgrade_energy_star"
    ADD_SOLAR = "add_solar"
    SEAL = "seal"
    INSULATE = "insulate"
    REPLACE = "replace"
    UPGRADE = "upgrade"
    REDUCE = "reduce"
    OTHER = "other"
    NONE = "none"
    """No actionable recommendation; such findings are skipped."""


class ScopeMode(StrEnum):
    """Geographic targeting mode of an incentive rule."""

    ALL = "all"
    STATES = "states"
    ZIPS = "zips"
    PREFIXES = "prefixes"


class IncentiveLevel(StrEnum):
    """Sponsor level of an incentive program."""

    FEDERAL = "federal"
    STATE = "state"
    UTILITY = "utility"
    LOCAL = "local"
    OTHER = "other"


class AmountUnit(StrEnum):
    """Unit of an incentive amount; only USD amounts are summed into totals."""

    USD = "usd"
    PERCENT = "percent"
    OTHER = "other"


EQUIPMENT_FEATURE_KEYS: frozenset[str] = frozenset({
    FeatureKey.AIR_CONDITIONER,
    FeatureKey.HEATING_EQUIPMENT,
    FeatureKey.WATER_HEATER,
    FeatureKey.SOLAR_PV,
})

# HVAC + domestic hot water systems earn a small confidence bonus.
HVAC_DHW_FEATURE_KEYS: frozenset[str] = frozenset({
    FeatureKey.AIR_CONDITIONER,
    FeatureKey.HEATING_EQUIPMENT,
    FeatureKey.WATER_HEATER,
})

NON_ACTIONABLE_INTENTS: frozenset[str] = frozenset({IntentKey.OTHER, IntentKey.NONE})
