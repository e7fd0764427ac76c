"""
Layered configuration for the home upgrade engine.

Layers, later ones winning:
  1. ``config/default.toml``   committed defaults
  2. ``config/local.toml``     per-machine overrides beside the base file (gitignored)
  3. ``.env``                  loaded into the process environment (gitignored)
  4. ``UPGRADE_ENGINE_*``      environment variables (see ``_ENV_OVERRIDES``)

``load_config()`` returns a frozen ``AppConfig``; stages and CLI commands take
that object rather than reading files or the environment themselves.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite database connection settings."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/upgrade_engine.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class DataConfig(BaseModel):
    """Filesystem paths for reference data and inputs."""

    model_config = ConfigDict(frozen=True)

    reference_file: str = "config/reference/catalog_seed.json"
    findings_dir: str = "data/findings"


class ClassifierConfig(BaseModel):
    """Catalog matching limits used by the finding classifier."""

    model_config = ConfigDict(frozen=True)

    catalog_query_limit: int = 8
    max_candidates: int = 5

    @field_validator("catalog_query_limit", "max_candidates")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Classifier limits must be >= 1, got {v}.")
        return v


class CardsConfig(BaseModel):
    """Upgrade card output settings."""

    model_config = ConfigDict(frozen=True)

    output_dir: str = "data/outputs/cards"
    write_parquet: bool = True


class IncentivesConfig(BaseModel):
    """Incentive resolution settings."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    disclaimer: str = (
        "Estimates only. Eligibility and amounts depend on program rules and "
        "installed equipment. Verify before purchase/installation."
    )


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/upgrade_engine.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Every config section for one process, built by ``load_config()``."""

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    data: DataConfig = DataConfig()
    classifier: ClassifierConfig = ClassifierConfig()
    cards: CardsConfig = CardsConfig()
    incentives: IncentivesConfig = IncentivesConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent

_ENV_PREFIX = "UPGRADE_ENGINE_"

# env var suffix → (section, key); a ``None`` section means a top-level key.
_ENV_OVERRIDES: dict[str, tuple[Optional[str], str]] = {
    "DB_PATH": ("database", "db_path"),
    "LOG_LEVEL": ("logging", "level"),
    "CARDS_DIR": ("cards", "output_dir"),
    "DEBUG": (None, "debug"),
}

_TRUTHY = frozenset({"1", "true", "yes"})


def _find_project_root() -> Path:
    """Nearest ancestor of this package holding ``pyproject.toml``."""
    for candidate in Path(__file__).resolve().parents[:5]:
        if (candidate / "pyproject.toml").exists():
            return candidate
    return _PROJECT_ROOT


def _read_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as fh:
        return tomllib.load(fh)


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Build the ``AppConfig`` for this process.

    ``local.toml`` is looked up next to whichever base file is used, so a
    test or deployment can ship its own pair.

    Args:
        config_path: Base TOML file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Validated ``AppConfig``.

    Raises:
        FileNotFoundError: If the base TOML file does not exist.
        pydantic.ValidationError: If a merged value fails validation.
    """
    root = _find_project_root()

    # .env never overrides variables already set in the process
    load_dotenv(dotenv_path=root / ".env", override=False)

    base_path = Path(config_path) if config_path is not None else root / "config" / "default.toml"
    if not base_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {base_path}\n"
            "Create config/default.toml or pass --config."
        )

    raw = _read_toml(base_path)
    local_path = base_path.parent / "local.toml"
    if local_path.exists():
        raw = _deep_merge(raw, _read_toml(local_path))

    return _build_app_config(_apply_env_overrides(raw))


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``; nested tables merge key by key."""
    merged = dict(base)
    for key, val in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(val, dict):
            merged[key] = _deep_merge(current, val)
        else:
            merged[key] = val
    return merged


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Overlay ``UPGRADE_ENGINE_*`` variables listed in ``_ENV_OVERRIDES``.

    Empty variables are ignored.  ``UPGRADE_ENGINE_DEBUG`` is true for
    ``1`` / ``true`` / ``yes`` (any case).
    """
    for suffix, (section, key) in _ENV_OVERRIDES.items():
        value = os.environ.get(_ENV_PREFIX + suffix)
        if not value:
            continue
        if section is None:
            raw[key] = value.lower() in _TRUTHY
        else:
            raw.setdefault(section, {})[key] = value
    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Validate each section; ``[project] debug`` is the fallback for ``debug``."""
    project = raw.pop("project", {})
    sections = {
        "database": DatabaseConfig,
        "data": DataConfig,
        "classifier": ClassifierConfig,
        "cards": CardsConfig,
        "incentives": IncentivesConfig,
        "logging": LoggingConfig,
    }
    return AppConfig(
        **{name: model(**raw.get(name, {})) for name, model in sections.items()},
        debug=raw.get("debug", project.get("debug", False)),
    )
