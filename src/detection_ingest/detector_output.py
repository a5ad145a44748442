"""In-memory model of a detector run report (MegaDetector-style JSON).

Field names in the report are fixed by the external detector tool. Each
dataclass below maps them explicitly through a ``*_FIELDS`` table instead of
relying on attribute-name reflection.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "detector_output"})

NO_DETECTION_CATEGORY = "0"
NO_DETECTION_LABEL = "empty"

# report key -> attribute name
INFO_FIELDS: dict[str, str] = {
    "detector": "detector",
    "detection_completion_time": "detection_completion_time",
    "classifier": "classifier",
    "classification_completion_time": "classification_completion_time",
}
IMAGE_FIELDS: dict[str, str] = {
    "file": "file",
    "max_detection_conf": "max_detection_conf",
    "detections": "detections",
}
DETECTION_FIELDS: dict[str, str] = {
    "category": "category",
    "conf": "conf",
    "bbox": "bbox",
    "classifications": "classifications",
}
REPORT_FIELDS: dict[str, str] = {
    "info": "info",
    "detection_categories": "detection_categories",
    "classification_categories": "classification_categories",
    "images": "images",
}


def default_detection_categories() -> dict[str, str]:
    """Detection vocabulary assumed for reports that ship without one."""

    return {
        NO_DETECTION_CATEGORY: NO_DETECTION_LABEL,
        "1": "animal",
        "2": "person",
        "3": "group",
        "4": "vehicle",
    }


def default_classification_categories() -> dict[str, str]:
    """Classification vocabulary assumed for reports that ship without one."""

    return {
        "1": "elk",
        "2": "wolf",
        "3": "bear",
        "6": "moose",
    }


def _pick(payload: Mapping[str, Any], fields: Mapping[str, str]) -> dict[str, Any]:
    return {attr: payload[key] for key, attr in fields.items() if key in payload}


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _as_float(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    return float(value)


def _category_mapping(value: Any) -> dict[str, str] | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise ValueError(f"category mapping must be an object, got {type(value).__name__}")
    return {str(code): "" if label is None else str(label) for code, label in value.items()}


@dataclass
class DetectorInfo:
    """Provenance of the detection and classification passes."""

    detector: str | None = None
    detection_completion_time: str | None = None
    classifier: str | None = None
    classification_completion_time: str | None = None

    @classmethod
    def unknown(cls) -> "DetectorInfo":
        """Placeholder provenance for reports that do not carry an ``info`` block."""

        return cls(
            detector="megadetector_unknown_version",
            detection_completion_time="unknown",
            classifier="ecosystem1_unknown_version",
            classification_completion_time="unknown",
        )

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DetectorInfo":
        values = _pick(payload, INFO_FIELDS)
        return cls(**{attr: _optional_str(value) for attr, value in values.items()})


@dataclass
class DetectorDetection:
    """One object reported in an image, with its nested ``(category, conf)`` classifications."""

    category: str = ""
    conf: float = 0.0
    bbox: list[float] | None = None
    classifications: list[tuple[str, float]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DetectorDetection":
        values = _pick(payload, DETECTION_FIELDS)

        bbox_raw = values.get("bbox")
        bbox = list(bbox_raw) if isinstance(bbox_raw, (list, tuple)) else None

        classifications: list[tuple[str, float]] = []
        for entry in values.get("classifications") or []:
            if not isinstance(entry, (list, tuple)) or len(entry) < 2:
                LOGGER.warning("detector_classification_malformed", extra={"entry": repr(entry)})
                continue
            classifications.append((str(entry[0]), float(entry[1])))

        return cls(
            category=str(values.get("category", "")),
            conf=_as_float(values.get("conf")),
            bbox=bbox,
            classifications=classifications,
        )


@dataclass
class DetectorImage:
    """Per-image entry of the report."""

    file: str = ""
    max_detection_conf: float = 0.0
    detections: list[DetectorDetection] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DetectorImage":
        values = _pick(payload, IMAGE_FIELDS)
        return cls(
            file=str(values.get("file", "")),
            max_detection_conf=_as_float(values.get("max_detection_conf")),
            detections=[DetectorDetection.from_dict(item) for item in values.get("detections") or []],
        )


@dataclass
class DetectorOutput:
    """Whole detector report: provenance, category vocabularies, and per-image detections."""

    info: DetectorInfo = field(default_factory=DetectorInfo)
    detection_categories: dict[str, str] | None = None
    classification_categories: dict[str, str] | None = None
    images: list[DetectorImage] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DetectorOutput":
        if not isinstance(payload, Mapping):
            raise ValueError(f"detector report must be a JSON object, got {type(payload).__name__}")

        values = _pick(payload, REPORT_FIELDS)
        info_raw = values.get("info")
        return cls(
            info=DetectorInfo.from_dict(info_raw) if isinstance(info_raw, Mapping) else DetectorInfo(),
            detection_categories=_category_mapping(values.get("detection_categories")),
            classification_categories=_category_mapping(values.get("classification_categories")),
            images=[DetectorImage.from_dict(item) for item in values.get("images") or []],
        )

    def apply_defaults(self) -> None:
        """Fill absent provenance and vocabularies with the legacy defaults.

        Only mappings that are missing entirely are replaced; a supplied but
        empty mapping is left alone.
        """

        if self.info == DetectorInfo():
            self.info = DetectorInfo.unknown()
        if self.detection_categories is None:
            self.detection_categories = default_detection_categories()
        if self.classification_categories is None:
            self.classification_categories = default_classification_categories()


def load_detector_output(path: Path | str, apply_defaults: bool = False) -> DetectorOutput:
    """Read a detector report from a JSON file."""

    report_path = Path(path)
    # utf-8-sig tolerates the BOM some Windows tools prepend.
    with report_path.open("r", encoding="utf-8-sig") as fp:
        payload = json.load(fp)

    output = DetectorOutput.from_dict(payload)
    if apply_defaults:
        output.apply_defaults()

    LOGGER.info(
        "detector_output_loaded",
        extra={
            "path": str(report_path),
            "images": len(output.images),
            "detector": output.info.detector,
            "apply_defaults": apply_defaults,
        },
    )
    return output


__all__ = [
    "NO_DETECTION_CATEGORY",
    "NO_DETECTION_LABEL",
    "DetectorInfo",
    "DetectorDetection",
    "DetectorImage",
    "DetectorOutput",
    "default_detection_categories",
    "default_classification_categories",
    "load_detector_output",
]
