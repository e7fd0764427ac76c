"""
Upgrade recommendation engine: turns inspection findings into persisted
catalog recommendations, then into ranked upgrade cards with cost, savings,
payback and incentive information.

Modules
-------
sources     : CatalogSource / AssumptionSource / IncentiveSource / SnapshotStore
              protocols implemented by the SQLite repositories.
geo_scope   : matches() + state_for_zip() — pure incentive targeting.
classifier  : classify() + classify_batch() — feature/intent rule tables,
              confidence heuristic, catalog candidate ranking.
persister   : persist() + SnapshotLockRegistry — delete-then-insert
              regeneration returning a PersistResult.
assumptions : pick_best() — choose one cost/savings record per card.
economics   : normalize_range() + compute_economics[_from_ranges]() — pure arithmetic.
incentives  : map_upgrade_to_type_key() + resolve_incentives().
cards       : build_cards() + rank_cards() — card assembly and ordering.
reporter    : write_cards_csv() + write_cards_json() + write_cards_parquet().
"""
