"""Detection/classification row building with run-scoped sequential keys."""

from __future__ import annotations

import math
from numbers import Real
from typing import Any, Sequence, TypedDict

import numpy as np

from detection_ingest.detector_output import NO_DETECTION_CATEGORY, DetectorDetection

BBOX_SEPARATOR = ", "


class DetectionRecord(TypedDict):
    detection_id: int
    image_id: int
    category: str
    conf: float
    bbox: str


class ClassificationRecord(TypedDict):
    classification_id: int
    detection_id: int
    category: str
    conf: float


def _format_coordinate(value: float) -> str:
    if value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return repr(value)


def serialize_bbox(bbox: Sequence[Any] | None) -> str:
    """Render ``[x, y, w, h]`` as ``"x, y, w, h"``; anything other than four numbers becomes ``""``.

    >>> serialize_bbox([1.0, 2.0, 3.5, 4.25])
    '1, 2, 3.5, 4.25'
    """

    if bbox is None or len(bbox) != 4:
        return ""

    values: list[float] = []
    for item in bbox:
        if isinstance(item, bool) or not isinstance(item, Real):
            return ""
        value = float(item)
        if not math.isfinite(value):
            return ""
        values.append(value)

    return BBOX_SEPARATOR.join(_format_coordinate(value) for value in values)


def parse_bbox(text: str | None) -> tuple[float, float, float, float] | None:
    """Parse a stored bbox string; empty text means no box."""

    if text is None or not text.strip():
        return None

    parts = [part.strip() for part in text.split(",")]
    if len(parts) != 4:
        raise ValueError(f"bbox must have exactly 4 values, got {len(parts)}: {text!r}")

    x, y, w, h = (float(part) for part in parts)
    return x, y, w, h


class SequentialKeyWriter:
    """Accumulate detection and classification rows for one ingestion run.

    Keys start at 1 and increase by one per emitted row across the whole run,
    so a fresh writer must be created for every run.
    """

    def __init__(self) -> None:
        self._next_detection_id = 1
        self._next_classification_id = 1
        self.detection_rows: list[DetectionRecord] = []
        self.classification_rows: list[ClassificationRecord] = []

    @property
    def next_detection_id(self) -> int:
        return self._next_detection_id

    @property
    def next_classification_id(self) -> int:
        return self._next_classification_id

    def add_placeholder(self, image_id: int) -> int:
        """Emit the no-detection row for an image the detector found empty."""

        detection_id = self._next_detection_id
        self._next_detection_id += 1
        self.detection_rows.append(
            {
                "detection_id": detection_id,
                "image_id": image_id,
                "category": NO_DETECTION_CATEGORY,
                "conf": 0.0,
                "bbox": "",
            }
        )
        return detection_id

    def add_detection(self, image_id: int, detection: DetectorDetection) -> int:
        """Emit a detection row and the rows for its nested classifications."""

        detection_id = self._next_detection_id
        self._next_detection_id += 1
        self.detection_rows.append(
            {
                "detection_id": detection_id,
                "image_id": image_id,
                "category": detection.category,
                "conf": detection.conf,
                "bbox": serialize_bbox(detection.bbox),
            }
        )

        for category, conf in detection.classifications:
            self.add_classification(detection_id, category, conf)
        return detection_id

    def add_classification(self, detection_id: int, category: str, conf: float) -> int:
        classification_id = self._next_classification_id
        self._next_classification_id += 1
        self.classification_rows.append(
            {
                "classification_id": classification_id,
                "detection_id": detection_id,
                "category": category,
                # Classification confidences are stored at single precision.
                "conf": float(np.float32(conf)),
            }
        )
        return classification_id


__all__ = [
    "DetectionRecord",
    "ClassificationRecord",
    "serialize_bbox",
    "parse_bbox",
    "SequentialKeyWriter",
]
