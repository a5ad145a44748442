"""Tests for YAML settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from detection_ingest.config import Settings, load_settings


def test_missing_file_returns_defaults(tmp_path: Path) -> None:
    assert load_settings(tmp_path / "absent.yaml") == Settings()


def test_values_are_read_and_bad_types_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text(
        "databases:\n"
        "  url: sqlite:///tmp/catalog.db\n"
        "ingest:\n"
        "  path_prefix_for_truncation: /data/set1/\n"
        "  path_separator: 5\n"
        "  apply_default_categories: true\n",
        encoding="utf-8",
    )

    settings = load_settings(path)

    assert settings.databases.url == "sqlite:///tmp/catalog.db"
    assert settings.ingest.path_prefix_for_truncation == "/data/set1/"
    assert settings.ingest.path_separator == "/"
    assert settings.ingest.apply_default_categories is True


def test_env_override_is_honored(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "env.yaml"
    path.write_text("ingest:\n  path_prefix_for_truncation: X/\n", encoding="utf-8")
    monkeypatch.setenv("DETECTION_INGEST_SETTINGS", str(path))

    assert load_settings().ingest.path_prefix_for_truncation == "X/"


def test_non_mapping_document_returns_defaults(tmp_path: Path) -> None:
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")

    assert load_settings(path) == Settings()


def test_yaml_syntax_error_is_raised(tmp_path: Path) -> None:
    path = tmp_path / "broken.yaml"
    path.write_text("ingest: [unclosed\n", encoding="utf-8")

    with pytest.raises(yaml.YAMLError):
        load_settings(path)
