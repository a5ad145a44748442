"""Tests for the detection ingest developer CLI."""

from __future__ import annotations

import json
from pathlib import Path

from sqlalchemy import func, select
from typer.testing import CliRunner

from detection_ingest.catalog import CatalogDatabase
from detection_ingest.db import DetectionInfo, DetectionRow, open_session
from detection_ingest.dev.ingest import app

runner = CliRunner()


def _prepare(tmp_path: Path, monkeypatch) -> tuple[Path, Path]:
    monkeypatch.setenv("DETECTION_INGEST_SETTINGS", str(tmp_path / "no-settings.yaml"))
    db_path = tmp_path / "catalog.db"
    with open_session(db_path) as session:
        CatalogDatabase(session).add_file("set1/cam/img.jpg")
        session.commit()

    report_path = tmp_path / "report.json"
    report_path.write_text(
        json.dumps(
            {
                "images": [
                    {"file": "/mnt/set1/cam/img.jpg", "detections": [{"category": "1", "conf": 0.9}]},
                    {"file": "/other/img.jpg", "detections": []},
                ]
            }
        ),
        encoding="utf-8",
    )
    return db_path, report_path


def test_run_then_clear(tmp_path: Path, monkeypatch) -> None:
    db_path, report_path = _prepare(tmp_path, monkeypatch)

    result = runner.invoke(app, ["run", str(report_path), "--db", str(db_path), "--prefix", "/mnt/", "--apply-defaults"])

    assert result.exit_code == 0, result.output
    assert "matched=1 skipped=1 detections=1" in result.output
    with open_session(db_path) as session:
        assert session.execute(select(func.count()).select_from(DetectionRow)).scalar_one() == 1
        info = session.execute(select(DetectionInfo)).scalar_one()
        assert info.detector == "megadetector_unknown_version"

    result = runner.invoke(app, ["clear", "--db", str(db_path)])

    assert result.exit_code == 0, result.output
    with open_session(db_path) as session:
        assert session.execute(select(func.count()).select_from(DetectionRow)).scalar_one() == 0
        assert session.execute(select(func.count()).select_from(DetectionInfo)).scalar_one() == 1


def test_run_requires_existing_report(tmp_path: Path, monkeypatch) -> None:
    db_path, _ = _prepare(tmp_path, monkeypatch)

    result = runner.invoke(app, ["run", str(tmp_path / "missing.json"), "--db", str(db_path)])

    assert result.exit_code != 0
