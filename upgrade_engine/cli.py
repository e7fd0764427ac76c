"""
Home Upgrade Engine — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Validate inputs.
  4. Execute action (DB init, reference load, pipeline stage, etc.).
  5. Report result to stdout.

Install and run::

    pip install -e .
    upgrade-engine --help
    upgrade-engine init-db
    upgrade-engine load-reference
    upgrade-engine create-snapshot --snapshot-id snap-1 --zip 97201
    upgrade-engine classify --file config/findings/sample_findings.csv
    upgrade-engine generate --snapshot-id snap-1 --file config/findings/sample_findings.csv
    upgrade-engine build-cards --snapshot-id snap-1
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="upgrade-engine",
    help="Home energy upgrade recommendation engine — findings to ranked upgrade cards.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from upgrade_engine.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from upgrade_engine.utils.logging import configure_logging
    configure_logging(config.logging)


def _fmt_range(lo, hi, unit: str = "") -> str:
    if lo is None and hi is None:
        return "n/a"
    if lo == hi:
        return f"{lo:,.0f}{unit}"
    return f"{lo:,.0f}–{hi:,.0f}{unit}"


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config (e.g. data/db/test.db).",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Initialize the SQLite database and apply the full schema.

    Safe to run multiple times — all DDL uses IF NOT EXISTS.
    Also runs pending schema migrations.
    """
    from upgrade_engine.db.connection import config_connection
    from upgrade_engine.db.migrations import run_migrations
    from upgrade_engine.db.schema import ALL_TABLE_NAMES, apply_schema

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")

    with config_connection(config.database, target_path) as conn:
        apply_schema(conn)
        migrations_applied = run_migrations(conn)

    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo(f"  Migrations applied: {migrations_applied}")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields.",
    ),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.
    """
    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:     {config.database.db_path}")
    typer.echo(f"  Reference file:    {config.data.reference_file}")
    typer.echo(f"  Catalog query/max: {config.classifier.catalog_query_limit}"
               f"/{config.classifier.max_candidates}")
    typer.echo(f"  Cards output dir:  {config.cards.output_dir}")
    typer.echo(f"  Incentives:        {'on' if config.incentives.enabled else 'off'}")
    typer.echo(f"  Log level:         {config.logging.level}")
    typer.echo(f"  Debug mode:        {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("load-reference")
def load_reference(
    reference_file: Optional[str] = typer.Option(
        None,
        "--file",
        "-f",
        help="Reference seed JSON. Defaults to config.data.reference_file.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Validate the file but do not write to the database.",
    ),
) -> None:
    """Load catalog items, upgrade types, assumptions and incentive rules.

    Uses UPSERT semantics — reloading the same file is idempotent.
    """
    from upgrade_engine.db.connection import config_connection
    from upgrade_engine.ingestion.reference_loader import load_reference as load_ref
    from upgrade_engine.ingestion.reference_loader import read_reference_file

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    path = Path(reference_file) if reference_file else Path(config.data.reference_file)
    typer.echo(f"Loading reference data from: {path}")

    try:
        data = read_reference_file(path)
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(
        f"  Validated: {len(data.catalog_items)} catalog items, "
        f"{len(data.upgrade_types)} upgrade types, "
        f"{len(data.incentive_rules)} incentive rules."
    )
    if dry_run:
        typer.echo("[OK] Dry run — nothing written.")
        return

    try:
        with config_connection(config.database) as conn:
            counts = load_ref(conn, data)
    except ValueError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"  Mappings: {counts.mappings}  Assumptions: {counts.assumptions}")
    typer.echo("[OK] Reference data loaded.")


@app.command("create-snapshot")
def create_snapshot(
    snapshot_id: str = typer.Option(..., "--snapshot-id", help="Snapshot identifier."),
    job_id: Optional[str] = typer.Option(None, "--job-id", help="Owning job id."),
    zip_code: Optional[str] = typer.Option(None, "--zip", help="Property ZIP code."),
    state: Optional[str] = typer.Option(None, "--state", help="Two-letter state code."),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Register (or update) a property assessment snapshot."""
    from pydantic import ValidationError

    from upgrade_engine.db.connection import config_connection
    from upgrade_engine.db.repositories.snapshot_repo import SnapshotRepository
    from upgrade_engine.models.snapshot import Snapshot

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        snapshot = Snapshot(id=snapshot_id, job_id=job_id, zip=zip_code, state=state)
    except ValidationError as exc:
        typer.echo(f"[ERROR] Invalid snapshot: {exc}", err=True)
        raise typer.Exit(code=1)

    with config_connection(config.database) as conn:
        SnapshotRepository(conn).upsert(snapshot)

    typer.echo(f"[OK] Snapshot {snapshot.id} saved (zip={snapshot.zip}, state={snapshot.state}).")


@app.command("classify")
def classify(
    findings_file: str = typer.Option(
        ...,
        "--file",
        "-f",
        help="Findings file (.csv or .json).",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Classify findings against the catalog and print the result.

    Dry run: nothing is written to the database.
    """
    from upgrade_engine.db.connection import config_connection
    from upgrade_engine.db.repositories.catalog_repo import CatalogRepository
    from upgrade_engine.errors import LookupFailedError
    from upgrade_engine.ingestion.findings_file import parse_findings_file
    from upgrade_engine.recommendations.classifier import classify_batch

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        findings = parse_findings_file(Path(findings_file))
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    try:
        with config_connection(config.database) as conn:
            classified = classify_batch(
                findings,
                CatalogRepository(conn),
                catalog_query_limit=config.classifier.catalog_query_limit,
                max_candidates=config.classifier.max_candidates,
            )
    except LookupFailedError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"{len(classified)} actionable finding(s) of {len(findings)}:")
    for c in classified:
        match = c.candidate_matches[0].display_name if c.candidate_matches else "NO_MATCH"
        typer.echo(
            f"  [{c.section.value:<10}] {c.feature_key:<28} {c.intent_key:<36} "
            f"{c.lead_class.value:<9} conf={c.confidence:.2f} → {match}"
        )
    typer.echo("[OK] Classification complete (dry run).")


@app.command("generate")
def generate(
    snapshot_id: str = typer.Option(..., "--snapshot-id", help="Target snapshot."),
    findings_file: str = typer.Option(
        ...,
        "--file",
        "-f",
        help="Findings file (.csv or .json).",
    ),
    job_id: Optional[str] = typer.Option(None, "--job-id", help="Job id for audit."),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Classify findings and replace the snapshot's recommendations.

    Exits 1 if the snapshot does not exist.  A failed insert is reported
    as a warning (exit 0): card generation can still run.
    """
    from upgrade_engine.errors import LookupFailedError, SnapshotNotFoundError
    from upgrade_engine.pipeline.generate import GenerateRecommendationsStage

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    stage = GenerateRecommendationsStage(config=config)
    try:
        run = stage.run(
            snapshot_id=snapshot_id,
            job_id=job_id,
            findings_path=Path(findings_file),
        )
    except (SnapshotNotFoundError, LookupFailedError, FileNotFoundError, ValueError) as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    result = stage.last_result
    if run.status == "partial":
        typer.echo(f"[WARN] Recommendations not saved: {run.error_message}")
        return

    typer.echo(
        f"  Inserted: {result.inserted if result else 0}  "
        f"Replaced: {result.deleted if result else 0}"
    )
    typer.echo(f"[OK] Recommendations generated | run_slug={run.run_slug}")


@app.command("build-cards")
def build_cards(
    snapshot_id: str = typer.Option(..., "--snapshot-id", help="Target snapshot."),
    zip_code: Optional[str] = typer.Option(
        None, "--zip", help="ZIP override (defaults to the snapshot's ZIP)."
    ),
    state: Optional[str] = typer.Option(
        None, "--state", help="State override (defaults to the snapshot's state)."
    ),
    output_dir: Optional[str] = typer.Option(
        None, "--output-dir", help="Report directory (defaults to config.cards.output_dir)."
    ),
    no_reports: bool = typer.Option(
        False, "--no-reports", help="Print cards only; do not write report files."
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Build ranked upgrade cards for a snapshot and write reports."""
    from upgrade_engine.errors import LookupFailedError, SnapshotNotFoundError
    from upgrade_engine.pipeline.cards import BuildCardsStage

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    stage = BuildCardsStage(config=config)
    try:
        run = stage.run(
            snapshot_id=snapshot_id,
            zip_code=zip_code,
            state=state,
            output_dir=Path(output_dir) if output_dir else None,
            write_reports=not no_reports,
        )
    except (SnapshotNotFoundError, LookupFailedError) as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    for rank, card in enumerate(stage.last_cards, start=1):
        ready = "ROI" if card.roi_ready else "   "
        typer.echo(
            f"  {rank:>2}. {ready} {card.title:<40} "
            f"cost ${_fmt_range(card.install_cost_min, card.install_cost_max)}  "
            f"payback {_fmt_range(card.payback_years_min, card.payback_years_max, ' yr')}  "
            f"incentives {len(card.incentives)}"
        )
    typer.echo(f"[OK] {run.rows_processed} card(s) built | run_slug={run.run_slug}")


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app()
