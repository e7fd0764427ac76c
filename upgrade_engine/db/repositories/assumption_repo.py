"""
Repository for upgrade types, catalog→type mappings and cost/savings
assumptions.  Read side implements ``AssumptionSource``.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from upgrade_engine.db.repositories.base import BaseRepository
from upgrade_engine.errors import LookupFailedError
from upgrade_engine.models.economics import AssumptionRecord

logger = logging.getLogger(__name__)


class AssumptionRepository(BaseRepository):
    """Read/write access to ``upgrade_types``, ``catalog_upgrade_types`` and
    ``upgrade_type_assumptions``."""

    def upsert_upgrade_type(
        self,
        upgrade_type_id: str,
        name: str,
        type_key: Optional[str] = None,
    ) -> None:
        self.execute(
            """
            INSERT INTO upgrade_types (upgrade_type_id, name, type_key)
            VALUES (?, ?, ?)
            ON CONFLICT(upgrade_type_id) DO UPDATE SET
                name     = excluded.name,
                type_key = excluded.type_key;
            """,
            (upgrade_type_id, name, type_key),
        )

    def link_catalog_item(self, catalog_item_id: str, upgrade_type_id: str) -> None:
        """Map a catalog item to an upgrade type (idempotent)."""
        self.execute(
            """
            INSERT OR IGNORE INTO catalog_upgrade_types (catalog_item_id, upgrade_type_id)
            VALUES (?, ?);
            """,
            (catalog_item_id, upgrade_type_id),
        )

    def replace_assumptions(
        self,
        upgrade_type_id: str,
        records: list[AssumptionRecord],
    ) -> int:
        """Replace all assumption records for an upgrade type.

        Returns:
            Number of records inserted.
        """
        self.execute(
            "DELETE FROM upgrade_type_assumptions WHERE upgrade_type_id = ?;",
            (upgrade_type_id,),
        )
        self.executemany(
            """
            INSERT INTO upgrade_type_assumptions (
                upgrade_type_id, install_cost_min, install_cost_max,
                annual_savings_min, annual_savings_max, expected_life_years,
                updated_at, source
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?);
            """,
            [
                (
                    upgrade_type_id,
                    r.install_cost_min,
                    r.install_cost_max,
                    r.annual_savings_min,
                    r.annual_savings_max,
                    r.expected_life_years,
                    r.updated_at,
                    r.source,
                )
                for r in records
            ],
        )
        return len(records)

    def upgrade_type_ids_for(self, catalog_item_id: str) -> list[str]:
        """Upgrade types mapped to a catalog item, in id order.

        Raises:
            LookupFailedError: If the query fails.
        """
        try:
            rows = self.fetchall(
                """
                SELECT upgrade_type_id FROM catalog_upgrade_types
                WHERE catalog_item_id = ?
                ORDER BY upgrade_type_id;
                """,
                (catalog_item_id,),
            )
        except sqlite3.Error as exc:
            raise LookupFailedError("assumptions", str(exc)) from exc
        return [r["upgrade_type_id"] for r in rows]

    def assumptions_for(self, upgrade_type_id: str) -> list[AssumptionRecord]:
        """All assumption records for an upgrade type, in insertion order.

        Raises:
            LookupFailedError: If the query fails.
        """
        try:
            rows = self.fetchall(
                """
                SELECT * FROM upgrade_type_assumptions
                WHERE upgrade_type_id = ?
                ORDER BY assumption_id;
                """,
                (upgrade_type_id,),
            )
        except sqlite3.Error as exc:
            raise LookupFailedError("assumptions", str(exc)) from exc
        return [
            AssumptionRecord(
                install_cost_min=r["install_cost_min"],
                install_cost_max=r["install_cost_max"],
                annual_savings_min=r["annual_savings_min"],
                annual_savings_max=r["annual_savings_max"],
                expected_life_years=r["expected_life_years"],
                updated_at=r["updated_at"],
                source=r["source"],
            )
            for r in rows
        ]
