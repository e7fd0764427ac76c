"""
Upgrade catalog models.

``CatalogItem`` is a sellable upgrade product or service definition.  The
catalog is owned by an external service; this engine only reads it.

``CatalogMatch`` is the lightweight reference carried on a classified finding
— just enough to persist the chosen item and show it in an audit trail.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from upgrade_engine.taxonomy.upgrade_taxonomy import LeadClass


class CatalogItem(BaseModel):
    """A purchasable / installable upgrade.

    Attributes:
        id: Stable catalog identifier (string PK).
        display_name: Customer-facing name, used as the card title.
        description: Optional long description; shown as card notes.
        feature_key: Canonical feature this item addresses.
        lead_class: ``equipment`` or ``service``.
        intent_keys: Intents this item is a preferred match for.
        tags: Free-form tags used by incentive applicability rules.
        sort_rank: Lower ranks are offered first; ``None`` sorts last.
        is_active: Inactive items are never matched.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    description: Optional[str] = None
    feature_key: str
    lead_class: LeadClass
    intent_keys: frozenset[str] = frozenset()
    tags: tuple[str, ...] = ()
    sort_rank: Optional[int] = None
    is_active: bool = True

    @field_validator("id", "display_name", "feature_key")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Catalog id, display_name and feature_key must not be empty.")
        return v.strip()

    def to_match(self) -> "CatalogMatch":
        """Return the lightweight reference for this item."""
        return CatalogMatch(
            id=self.id,
            display_name=self.display_name,
            feature_key=self.feature_key,
            lead_class=self.lead_class,
        )


class CatalogMatch(BaseModel):
    """Reference to a catalog item chosen as a candidate for a finding."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    feature_key: str
    lead_class: LeadClass
