"""
Inspection finding models.

``Finding`` is one raw observation from a home energy inspection report.
It is immutable input and is never persisted verbatim; only its raw text
survives as audit fields on the resulting ``Recommendation`` row.

``ClassifiedFinding`` is the classifier's canonical reading of a finding.
It is transient: produced by ``classify()`` and consumed immediately by the
persister.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator

from upgrade_engine.models.catalog import CatalogMatch
from upgrade_engine.taxonomy.upgrade_taxonomy import LeadClass, Section

MAX_CANDIDATE_MATCHES = 5


class Finding(BaseModel):
    """One raw inspection observation.

    Attributes:
        section: ``priority`` or ``additional`` report section.
        feature_text: The inspected feature, e.g. ``"Attic insulation"``.
        condition_text: Today's condition, e.g. ``"R-19"``.
        recommendation_text: Inspector's recommendation, e.g.
            ``"Insulate to R-49"``. May be empty or a dash placeholder.
    """

    model_config = ConfigDict(frozen=True)

    section: Section = Section.ADDITIONAL
    feature_text: str = ""
    condition_text: str = ""
    recommendation_text: str = ""

    @field_validator("feature_text", "condition_text", "recommendation_text", mode="before")
    @classmethod
    def coerce_text(cls, v: object) -> str:
        return "" if v is None else str(v)


class ClassifiedFinding(BaseModel):
    """Canonical classification of a ``Finding`` plus ranked catalog matches.

    Attributes:
        section: Copied from the source finding (drives batch ordering).
        feature_key: Canonical feature key (rule match or text slug).
        intent_key: Canonical intent key derived from the recommendation.
        lead_class: ``equipment`` or ``service``.
        confidence: Heuristic confidence in ``[0, 1]``.
        candidate_matches: At most 5 catalog refs, intent-matching items first.
        raw_feature: Original feature text.
        raw_condition: Original condition text.
        raw_recommendation: Original recommendation text.
    """

    model_config = ConfigDict(frozen=True)

    section: Section
    feature_key: str
    intent_key: str
    lead_class: LeadClass
    confidence: float
    candidate_matches: tuple[CatalogMatch, ...] = ()
    raw_feature: str = ""
    raw_condition: str = ""
    raw_recommendation: str = ""

    @field_validator("confidence")
    @classmethod
    def validate_confidence(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"confidence must be in [0.0, 1.0], got {v}.")
        return v

    @field_validator("candidate_matches")
    @classmethod
    def validate_match_count(cls, v: tuple[CatalogMatch, ...]) -> tuple[CatalogMatch, ...]:
        if len(v) > MAX_CANDIDATE_MATCHES:
            raise ValueError(
                f"candidate_matches holds at most {MAX_CANDIDATE_MATCHES} entries, got {len(v)}."
            )
        return v
