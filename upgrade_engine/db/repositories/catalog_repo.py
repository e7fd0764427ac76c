"""
Repository for the upgrade catalog.

Read side implements ``CatalogSource``; the upsert exists for loading
reference data from seed files.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Iterable

from upgrade_engine.db.repositories.base import BaseRepository, dump_list, load_list
from upgrade_engine.errors import LookupFailedError
from upgrade_engine.models.catalog import CatalogItem

logger = logging.getLogger(__name__)


class CatalogRepository(BaseRepository):
    """Read/write access to ``catalog_items``."""

    def upsert(self, item: CatalogItem) -> None:
        """Insert or replace a catalog item by id."""
        self.execute(
            """
            INSERT INTO catalog_items (
                catalog_item_id, display_name, description, feature_key,
                lead_class, intent_keys, tags, sort_rank, is_active
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(catalog_item_id) DO UPDATE SET
                display_name = excluded.display_name,
                description  = excluded.description,
                feature_key  = excluded.feature_key,
                lead_class   = excluded.lead_class,
                intent_keys  = excluded.intent_keys,
                tags         = excluded.tags,
                sort_rank    = excluded.sort_rank,
                is_active    = excluded.is_active,
                updated_at   = strftime('%Y-%m-%dT%H:%M:%SZ', 'now');
            """,
            (
                item.id,
                item.display_name,
                item.description,
                item.feature_key,
                item.lead_class.value,
                dump_list(item.intent_keys),
                dump_list(item.tags),
                item.sort_rank,
                int(item.is_active),
            ),
        )

    def find_candidates(
        self,
        feature_key: str,
        lead_class: str,
        limit: int,
    ) -> list[CatalogItem]:
        """Active items for a (feature_key, lead_class) pair in offer order.

        Ordered by ``sort_rank`` ascending with unranked items last, then
        ``display_name``.

        Raises:
            LookupFailedError: If the query fails.
        """
        try:
            rows = self.fetchall(
                """
                SELECT * FROM catalog_items
                WHERE is_active = 1 AND feature_key = ? AND lead_class = ?
                ORDER BY sort_rank IS NULL, sort_rank, display_name
                LIMIT ?;
                """,
                (feature_key, str(lead_class), limit),
            )
        except sqlite3.Error as exc:
            raise LookupFailedError("catalog", str(exc)) from exc
        return [_row_to_item(r) for r in rows]

    def get_by_ids(self, ids: Iterable[str]) -> dict[str, CatalogItem]:
        """Fetch items (active or not) keyed by id; unknown ids are omitted.

        Raises:
            LookupFailedError: If the query fails.
        """
        wanted = sorted({str(i) for i in ids})
        if not wanted:
            return {}
        placeholders = ", ".join("?" for _ in wanted)
        try:
            rows = self.fetchall(
                f"SELECT * FROM catalog_items WHERE catalog_item_id IN ({placeholders});",
                tuple(wanted),
            )
        except sqlite3.Error as exc:
            raise LookupFailedError("catalog", str(exc)) from exc
        return {r["catalog_item_id"]: _row_to_item(r) for r in rows}


def _row_to_item(row: sqlite3.Row) -> CatalogItem:
    return CatalogItem(
        id=row["catalog_item_id"],
        display_name=row["display_name"],
        description=row["description"],
        feature_key=row["feature_key"],
        lead_class=row["lead_class"],
        intent_keys=frozenset(load_list(row["intent_keys"])),
        tags=tuple(load_list(row["tags"])),
        sort_rank=row["sort_rank"],
        is_active=bool(row["is_active"]),
    )
