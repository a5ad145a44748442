"""Tests for bbox serialization and sequential key assignment."""

from __future__ import annotations

import pytest

from detection_ingest.detector_output import DetectorDetection
from detection_ingest.rows import SequentialKeyWriter, parse_bbox, serialize_bbox


def test_bbox_serializes_with_shortest_values() -> None:
    text = serialize_bbox([1.0, 2.0, 3.5, 4.25])

    assert text == "1, 2, 3.5, 4.25"
    assert parse_bbox(text) == (1.0, 2.0, 3.5, 4.25)


def test_bbox_keeps_full_precision() -> None:
    bbox = [0.0123, 0.4567891234, 0.1, 0.3333333333333333]

    assert parse_bbox(serialize_bbox(bbox)) == tuple(bbox)


@pytest.mark.parametrize("bbox", [None, [], [1.0, 2.0, 3.0], [1.0, 2.0, 3.0, 4.0, 5.0], [1.0, "x", 3.0, 4.0]])
def test_malformed_bbox_serializes_to_empty(bbox) -> None:
    assert serialize_bbox(bbox) == ""


def test_parse_bbox_rejects_wrong_arity() -> None:
    assert parse_bbox("") is None
    with pytest.raises(ValueError):
        parse_bbox("1, 2, 3")


def test_keys_are_contiguous_across_images() -> None:
    writer = SequentialKeyWriter()

    writer.add_placeholder(image_id=10)
    first = writer.add_detection(
        20, DetectorDetection(category="1", conf=0.9, bbox=[0.1, 0.2, 0.3, 0.4], classifications=[("elk", 0.8)])
    )
    second = writer.add_detection(
        30, DetectorDetection(category="2", conf=0.5, classifications=[("wolf", 0.4), ("bear", 0.1)])
    )

    assert [row["detection_id"] for row in writer.detection_rows] == [1, 2, 3]
    assert [row["classification_id"] for row in writer.classification_rows] == [1, 2, 3]
    assert [row["detection_id"] for row in writer.classification_rows] == [first, second, second]
    assert writer.next_detection_id == 4
    assert writer.next_classification_id == 4


def test_placeholder_row_shape() -> None:
    writer = SequentialKeyWriter()
    writer.add_placeholder(image_id=7)

    assert writer.detection_rows == [
        {"detection_id": 1, "image_id": 7, "category": "0", "conf": 0.0, "bbox": ""}
    ]
    assert writer.classification_rows == []


def test_classification_confidence_is_single_precision() -> None:
    writer = SequentialKeyWriter()
    writer.add_classification(1, "elk", 0.8)

    stored = writer.classification_rows[0]["conf"]
    assert stored != 0.8
    assert stored == pytest.approx(0.8, abs=1e-7)


def test_detection_confidence_is_stored_as_supplied() -> None:
    writer = SequentialKeyWriter()
    writer.add_detection(1, DetectorDetection(category="1", conf=0.123456789))

    assert writer.detection_rows[0]["conf"] == 0.123456789
