"""Configuration loader and typed settings for detection ingestion."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class DatabaseConfig:
    """Connection target for the catalog database that receives detection tables."""

    url: str = "sqlite:///data/catalog.db"


@dataclass
class IngestConfig:
    """Knobs for reconciling detector reports against the catalog."""

    path_prefix_for_truncation: str = ""
    path_separator: str = "/"
    apply_default_categories: bool = False


@dataclass
class Settings:
    """Top-level application settings."""

    databases: DatabaseConfig = field(default_factory=DatabaseConfig)
    ingest: IngestConfig = field(default_factory=IngestConfig)


def _project_root() -> Path:
    """Best-effort detection of the repository root for config discovery."""

    module_path = Path(__file__).resolve()
    try:
        return module_path.parents[2]
    except IndexError:  # pragma: no cover - defensive fallback
        return module_path.parent


def _build_default_settings_paths() -> list[Path]:
    """Return candidate settings paths ordered by preference."""

    cwd_candidate = (Path.cwd() / "config" / "settings.yaml").resolve()
    repo_candidate = (_project_root() / "config" / "settings.yaml").resolve()

    candidates: list[Path] = []
    seen: set[Path] = set()
    for candidate in (cwd_candidate, repo_candidate):
        if candidate in seen:
            continue
        seen.add(candidate)
        candidates.append(candidate)
    return candidates


_DEFAULT_SETTINGS_PATHS = _build_default_settings_paths()


def _resolve_settings_path(settings_path: Path | str | None) -> Path:
    """Determine which settings file to load, honoring overrides."""

    if settings_path:
        return Path(settings_path).expanduser().resolve()

    env_override = os.getenv("DETECTION_INGEST_SETTINGS")
    if env_override:
        return Path(env_override).expanduser().resolve()

    for candidate in _DEFAULT_SETTINGS_PATHS:
        if candidate.exists():
            return candidate
    return _DEFAULT_SETTINGS_PATHS[0]


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    return {}


def load_settings(settings_path: Path | str | None = None) -> Settings:
    """Load application settings from a YAML file, falling back to defaults.

    Missing files, non-mapping documents, and fields of the wrong type leave the
    corresponding defaults in place. YAML syntax errors propagate.
    """
    path = _resolve_settings_path(settings_path)
    settings = Settings()

    if not path.exists() or not path.is_file():
        return settings

    raw: Any
    with path.open("r", encoding="utf-8") as fp:
        raw = yaml.safe_load(fp) or {}

    if not isinstance(raw, dict):
        return settings

    databases_raw = _as_dict(raw.get("databases"))
    if isinstance(databases_raw.get("url"), str):
        settings.databases.url = databases_raw["url"]

    ingest_raw = _as_dict(raw.get("ingest"))
    ingest_cfg = settings.ingest
    if isinstance(ingest_raw.get("path_prefix_for_truncation"), str):
        ingest_cfg.path_prefix_for_truncation = ingest_raw["path_prefix_for_truncation"]
    if isinstance(ingest_raw.get("path_separator"), str) and ingest_raw["path_separator"]:
        ingest_cfg.path_separator = ingest_raw["path_separator"]
    if isinstance(ingest_raw.get("apply_default_categories"), bool):
        ingest_cfg.apply_default_categories = ingest_raw["apply_default_categories"]

    return settings


__all__ = [
    "DatabaseConfig",
    "IngestConfig",
    "Settings",
    "load_settings",
]
