"""
Persisted recommendation rows and the persister's structured result.

A ``Recommendation`` links a snapshot to the catalog item chosen for one
classified finding.  Rows for a snapshot are always replaced as a set
(delete-then-insert), so they carry no update timestamps.

``PersistResult`` is returned instead of raising: a failed insert must not
abort the snapshot workflow that called the persister.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator

from upgrade_engine.taxonomy.upgrade_taxonomy import LeadClass, Section

NO_MATCH_CODE = "NO_MATCH"
NO_MATCH_MESSAGE = "No upgrade catalog match found"


class Recommendation(BaseModel):
    """One recommendation row for a snapshot.

    Attributes:
        rec_id: Auto-assigned DB PK; ``None`` before insertion. Ascending
            ``rec_id`` is the persisted insertion order.
        snapshot_id: Snapshot this row belongs to.
        job_id: Job that triggered generation (audit only).
        section: Report section of the source finding.
        feature_key: Canonical feature key.
        intent_key: Canonical intent key.
        catalog_item_id: Chosen catalog item, or ``None`` on no match.
        lead_class: ``equipment`` or ``service``.
        confidence: Classifier confidence.
        chosen: ``True`` iff a catalog item was chosen.
        raw_feature / raw_condition / raw_recommendation: Audit copies of
            the finding text.
        error_code: ``"NO_MATCH"`` when not chosen, else ``None``.
        error_message: Human-readable error, else ``None``.
    """

    model_config = ConfigDict(frozen=True)

    rec_id: Optional[int] = None
    snapshot_id: str
    job_id: Optional[str] = None
    section: Section = Section.ADDITIONAL
    feature_key: str
    intent_key: str
    catalog_item_id: Optional[str] = None
    lead_class: LeadClass
    confidence: float
    chosen: bool = False
    raw_feature: str = ""
    raw_condition: str = ""
    raw_recommendation: str = ""
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @model_validator(mode="after")
    def validate_chosen_consistency(self) -> "Recommendation":
        if self.chosen != (self.catalog_item_id is not None):
            raise ValueError("chosen must be True exactly when catalog_item_id is set.")
        if not self.chosen and self.error_code is None:
            raise ValueError("Unchosen recommendations must carry an error_code.")
        return self


class PersistResult(BaseModel):
    """Outcome of a recommendation regeneration for one snapshot.

    Attributes:
        ok: ``True`` if the new rows were written (or there was nothing to write).
        inserted: Rows inserted.
        deleted: Prior rows deleted (telemetry only).
        error: Error description when ``ok`` is ``False``.
    """

    model_config = ConfigDict(frozen=True)

    ok: bool
    inserted: int = 0
    deleted: int = 0
    error: Optional[str] = None
