"""Reconcile detector-supplied category vocabularies into table rows."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TypedDict

from detection_ingest.detector_output import NO_DETECTION_CATEGORY, NO_DETECTION_LABEL


class CategoryRow(TypedDict):
    category: str
    label: str


def reconcile_detection_categories(mapping: Mapping[str, str] | None) -> list[CategoryRow]:
    """Return detection category rows, guaranteeing the no-detection code is present.

    When the detector did not define the no-detection code, a ``("0", "empty")``
    row is placed first.
    """

    rows: list[CategoryRow] = [
        {"category": str(code), "label": str(label)} for code, label in (mapping or {}).items()
    ]
    if not any(row["category"] == NO_DETECTION_CATEGORY for row in rows):
        rows.insert(0, {"category": NO_DETECTION_CATEGORY, "label": NO_DETECTION_LABEL})
    return rows


def reconcile_classification_categories(mapping: Mapping[str, str] | None) -> list[CategoryRow]:
    """Return classification category rows exactly as supplied; ``None`` yields no rows."""

    if not mapping:
        return []
    return [{"category": str(code), "label": str(label)} for code, label in mapping.items()]


__all__ = ["CategoryRow", "reconcile_detection_categories", "reconcile_classification_categories"]
