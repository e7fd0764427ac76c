"""
Repository for incentive rules.  Read side implements ``IncentiveSource``.
"""

from __future__ import annotations

import logging
import sqlite3

from upgrade_engine.db.repositories.base import BaseRepository, dump_list, load_list
from upgrade_engine.errors import LookupFailedError
from upgrade_engine.models.economics import GeoScope, IncentiveRule

logger = logging.getLogger(__name__)


class IncentiveRuleRepository(BaseRepository):
    """Read/write access to ``incentive_rules``."""

    def upsert(self, rule: IncentiveRule) -> None:
        """Insert or replace an incentive rule by id."""
        self.execute(
            """
            INSERT OR REPLACE INTO incentive_rules (
                incentive_id, name, level, amount_min, amount_max, amount_unit,
                scope_mode, scope_values, applies_to_catalog_ids,
                applies_to_tags, applies_to_upgrade_types, url, notes, is_active
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                rule.id,
                rule.name,
                rule.level.value,
                rule.amount_min,
                rule.amount_max,
                rule.amount_unit.value,
                rule.scope.mode,
                dump_list(rule.scope.values),
                dump_list(rule.applies_to_catalog_ids),
                dump_list(rule.applies_to_tags),
                dump_list(rule.applies_to_upgrade_types),
                rule.url,
                rule.notes,
                int(rule.is_active),
            ),
        )

    def list_active(self) -> list[IncentiveRule]:
        """All active rules ordered by id.

        Raises:
            LookupFailedError: If the query fails.
        """
        try:
            rows = self.fetchall(
                "SELECT * FROM incentive_rules WHERE is_active = 1 ORDER BY incentive_id;"
            )
        except sqlite3.Error as exc:
            raise LookupFailedError("incentives", str(exc)) from exc
        return [_row_to_rule(r) for r in rows]


def _row_to_rule(row: sqlite3.Row) -> IncentiveRule:
    return IncentiveRule(
        id=row["incentive_id"],
        name=row["name"],
        level=row["level"],
        amount_min=row["amount_min"],
        amount_max=row["amount_max"],
        amount_unit=row["amount_unit"],
        scope=GeoScope(mode=row["scope_mode"], values=load_list(row["scope_values"])),
        applies_to_catalog_ids=frozenset(load_list(row["applies_to_catalog_ids"])),
        applies_to_tags=frozenset(load_list(row["applies_to_tags"])),
        applies_to_upgrade_types=frozenset(load_list(row["applies_to_upgrade_types"])),
        url=row["url"],
        notes=row["notes"],
        is_active=bool(row["is_active"]),
    )
