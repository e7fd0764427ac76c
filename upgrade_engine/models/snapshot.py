"""
Snapshot model.

A snapshot is one point-in-time assessment of a property (one inspection
report for one job).  Recommendations and cards are always scoped to a
snapshot; the engine only needs to check that a snapshot exists and to read
its location.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class Snapshot(BaseModel):
    """A property assessment snapshot.

    Attributes:
        id: Snapshot identifier (string PK).
        job_id: Job the snapshot belongs to.
        zip: Property ZIP code, if known.
        state: Two-letter state code, if known.
        created_at: UTC creation time; set by the DB when ``None``.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    job_id: Optional[str] = None
    zip: Optional[str] = None
    state: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Snapshot id must not be empty.")
        return v.strip()

    @field_validator("state")
    @classmethod
    def normalize_state(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip().upper()
        return v or None
