"""
Parser for inspection findings exported as CSV or JSON.

CSV — comma delimited, with a header row.
Required columns:
  feature, recommendation

Optional columns (empty string → default):
  section            → ``priority`` or ``additional`` (default ``additional``)
  todays_condition   → current condition text (alias: ``condition``)

JSON — either a list of objects or ``{"findings": [...]}`` with the same keys.

Placeholder recommendations (empty, ``—``, ``n/a``) are kept here; the
classifier decides what is actionable.
"""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Any, Mapping

from pydantic import ValidationError

from upgrade_engine.models.finding import Finding
from upgrade_engine.taxonomy.upgrade_taxonomy import Section

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = frozenset({"feature", "recommendation"})

_CONDITION_KEYS = ("todays_condition", "condition")

_MAX_ERRORS_SHOWN = 10


def parse_findings_file(path: Path) -> list[Finding]:
    """Parse a ``.csv`` or ``.json`` findings file by extension.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: On an unsupported extension or any invalid row.
    """
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return parse_findings_csv(path)
    if suffix == ".json":
        return parse_findings_json(path)
    raise ValueError(f"Unsupported findings file type '{suffix}': {path}")


def parse_findings_csv(path: Path) -> list[Finding]:
    """Parse a CSV findings export.

    All rows are validated before any are returned. If **any** row fails,
    a single :class:`ValueError` is raised listing the first 10 failures.

    Args:
        path: Path to the CSV file (must exist).

    Returns:
        Findings in file order.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If required columns are missing or any row fails validation.
    """
    if not path.exists():
        raise FileNotFoundError(f"Findings CSV file not found: {path}")

    with open(path, encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)

        if reader.fieldnames is None:
            raise ValueError(f"CSV file is empty or has no header row: {path}")

        actual_cols = {c.strip().lower() for c in reader.fieldnames if c}
        missing = REQUIRED_COLUMNS - actual_cols
        if missing:
            raise ValueError(
                f"CSV missing required columns: {sorted(missing)}\n"
                f"Found columns: {sorted(actual_cols)}"
            )

        rows = [
            {(k or "").strip().lower(): v for k, v in row.items()}
            for row in reader
        ]

    if not rows:
        logger.warning("Findings CSV is empty (header only): %s", path)
        return []

    # 1-based, skip header row
    return _validate_rows(rows, path, first_line=2)


def parse_findings_json(path: Path) -> list[Finding]:
    """Parse a JSON findings export (see module docstring for shapes).

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: On malformed JSON, a wrong top-level shape, or any
            invalid entry.
    """
    if not path.exists():
        raise FileNotFoundError(f"Findings JSON file not found: {path}")

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Malformed JSON in {path.name}: {exc}") from exc

    if isinstance(payload, dict):
        payload = payload.get("findings")
    if not isinstance(payload, list):
        raise ValueError(
            f"{path.name}: expected a list of findings or an object with a 'findings' list."
        )

    rows: list[Mapping[str, Any]] = []
    for i, entry in enumerate(payload):
        if not isinstance(entry, dict):
            raise ValueError(f"{path.name}: entry {i} is not an object.")
        rows.append({str(k).strip().lower(): v for k, v in entry.items()})

    return _validate_rows(rows, path, first_line=0)


# ── Private helpers ────────────────────────────────────────────────────────────

def _validate_rows(
    rows: list[Mapping[str, Any]],
    path: Path,
    first_line: int,
) -> list[Finding]:
    findings: list[Finding] = []
    errors: list[tuple[int, str]] = []

    for i, row in enumerate(rows):
        try:
            findings.append(_row_to_finding(row))
        except (ValueError, ValidationError) as exc:
            errors.append((i + first_line, str(exc)))

    if errors:
        detail = "\n".join(f"  Row {ln}: {msg}" for ln, msg in errors[:_MAX_ERRORS_SHOWN])
        extra = len(errors) - _MAX_ERRORS_SHOWN
        suffix = f"\n  … and {extra} more" if extra > 0 else ""
        raise ValueError(
            f"{len(errors)} row(s) failed validation in {path.name}:\n{detail}{suffix}"
        )

    logger.info("Parsed %d findings from %s", len(findings), path.name)
    return findings


def _row_to_finding(row: Mapping[str, Any]) -> Finding:
    """Convert a parsed row to a :class:`Finding`.

    Raises:
        ValueError: On an unknown section or an empty feature.
    """
    feature = _text(row.get("feature"))
    if not feature:
        raise ValueError("Required field 'feature' is empty.")

    condition = ""
    for key in _CONDITION_KEYS:
        condition = _text(row.get(key))
        if condition:
            break

    return Finding(
        section=_parse_section(row.get("section")),
        feature_text=feature,
        condition_text=condition,
        recommendation_text=_text(row.get("recommendation")),
    )


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _parse_section(value: Any) -> Section:
    text = _text(value).lower()
    if not text:
        return Section.ADDITIONAL
    try:
        return Section(text)
    except ValueError:
        raise ValueError(
            f"Invalid section '{text}'. Valid values: {[s.value for s in Section]}"
        )
