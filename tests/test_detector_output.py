"""Tests for parsing detector reports."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from detection_ingest.detector_output import (
    DetectorInfo,
    DetectorOutput,
    default_classification_categories,
    default_detection_categories,
    load_detector_output,
)

REPORT = {
    "info": {
        "detector": "megadetector_v5a.0.0",
        "detection_completion_time": "2023-04-01 10:00:00",
        "classifier": "ecosystem1_v2",
        "classification_completion_time": "2023-04-01 11:00:00",
        "format_version": "1.2",
    },
    "detection_categories": {"1": "animal", "2": "person"},
    "classification_categories": {"1": "elk"},
    "images": [
        {"file": "cam1/img001.jpg", "max_detection_conf": 0.0, "detections": []},
        {
            "file": "cam1/img002.jpg",
            "max_detection_conf": 0.92,
            "detections": [
                {
                    "category": "1",
                    "conf": 0.92,
                    "bbox": [0.1, 0.2, 0.3, 0.4],
                    "classifications": [["1", 0.8], ["2"]],
                },
                {"category": "2", "conf": "0.5"},
            ],
        },
    ],
}


def test_report_fields_are_mapped() -> None:
    output = DetectorOutput.from_dict(REPORT)

    assert output.info.detector == "megadetector_v5a.0.0"
    assert output.info.classification_completion_time == "2023-04-01 11:00:00"
    assert output.detection_categories == {"1": "animal", "2": "person"}
    assert output.classification_categories == {"1": "elk"}
    assert [image.file for image in output.images] == ["cam1/img001.jpg", "cam1/img002.jpg"]

    first, second = output.images[1].detections
    assert first.bbox == [0.1, 0.2, 0.3, 0.4]
    assert first.classifications == [("1", 0.8)]
    assert second.conf == 0.5
    assert second.bbox is None
    assert second.classifications == []


def test_missing_sections_stay_absent() -> None:
    output = DetectorOutput.from_dict({"images": [{"file": "a.jpg"}]})

    assert output.info == DetectorInfo()
    assert output.detection_categories is None
    assert output.classification_categories is None
    assert output.images[0].detections == []


def test_non_object_report_is_rejected() -> None:
    with pytest.raises(ValueError):
        DetectorOutput.from_dict([])  # type: ignore[arg-type]


def test_load_applies_defaults_only_when_asked(tmp_path: Path) -> None:
    path = tmp_path / "report.json"
    path.write_text(json.dumps({"images": []}), encoding="utf-8")

    plain = load_detector_output(path)
    assert plain.detection_categories is None

    defaulted = load_detector_output(path, apply_defaults=True)
    assert defaulted.info == DetectorInfo.unknown()
    assert defaulted.detection_categories == default_detection_categories()
    assert defaulted.classification_categories == default_classification_categories()


def test_defaults_do_not_replace_supplied_vocabularies(tmp_path: Path) -> None:
    path = tmp_path / "report.json"
    path.write_text("\ufeff" + json.dumps(REPORT), encoding="utf-8")

    output = load_detector_output(path, apply_defaults=True)

    assert output.info.detector == "megadetector_v5a.0.0"
    assert output.detection_categories == {"1": "animal", "2": "person"}
    assert output.classification_categories == {"1": "elk"}
