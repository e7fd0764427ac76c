"""
Data-source protocols consumed by the engine.

Engine functions receive these as arguments instead of opening connections
themselves, so they can be driven by the SQLite repositories in production
and by simple in-memory fakes in tests.

Implementations:
  - ``CatalogSource``    → ``db.repositories.catalog_repo.CatalogRepository``
  - ``AssumptionSource`` → ``db.repositories.assumption_repo.AssumptionRepository``
  - ``IncentiveSource``  → ``db.repositories.incentive_repo.IncentiveRuleRepository``
  - ``SnapshotStore``    → ``db.repositories.snapshot_repo.SnapshotRepository``
  - ``RecommendationStore`` → ``db.repositories.snapshot_repo.RecommendationRepository``

Lookups that fail upstream raise ``errors.LookupFailedError``.
"""

from __future__ import annotations

from typing import Iterable, Protocol

from upgrade_engine.models.catalog import CatalogItem
from upgrade_engine.models.economics import AssumptionRecord, IncentiveRule
from upgrade_engine.models.recommendation import Recommendation


class CatalogSource(Protocol):
    def find_candidates(
        self, feature_key: str, lead_class: str, limit: int
    ) -> list[CatalogItem]:
        """Active items for the pair ordered by sort_rank (unranked last)."""
        ...

    def get_by_ids(self, ids: Iterable[str]) -> dict[str, CatalogItem]:
        ...


class AssumptionSource(Protocol):
    def upgrade_type_ids_for(self, catalog_item_id: str) -> list[str]:
        ...

    def assumptions_for(self, upgrade_type_id: str) -> list[AssumptionRecord]:
        ...


class IncentiveSource(Protocol):
    def list_active(self) -> list[IncentiveRule]:
        ...


class SnapshotStore(Protocol):
    def snapshot_exists(self, snapshot_id: str) -> bool:
        ...


class RecommendationStore(Protocol):
    def delete_for_snapshot(self, snapshot_id: str) -> int:
        ...

    def insert_many(self, recs: list[Recommendation]) -> int:
        """All-or-nothing insert in list order."""
        ...

    def list_for_snapshot(self, snapshot_id: str) -> list[Recommendation]:
        """Rows in persisted order."""
        ...
