"""Reconcile a detector report against the catalog and repopulate the detection tables."""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from sqlalchemy.orm import Session

from detection_ingest.catalog import CATALOG_KEY_COLUMNS, CatalogDatabase, CatalogIndex
from detection_ingest.categories import (
    reconcile_classification_categories,
    reconcile_detection_categories,
)
from detection_ingest.config import Settings, load_settings
from detection_ingest.db import (
    ClassificationCategory,
    ClassificationRow,
    DetectionCategory,
    DetectionInfo,
    DetectionRow,
    DetectionStore,
    open_session,
)
from detection_ingest.detector_output import DetectorImage, DetectorOutput, load_detector_output
from detection_ingest.paths import normalize_detector_path
from detection_ingest.rows import SequentialKeyWriter
from detection_ingest.schema import SchemaManager
from utils.logging import get_logger

INFO_ROW_ID = 1

_UNSET: Any = object()


@dataclass
class IngestSummary:
    """Counts for one ingestion run; skipped images are otherwise silent."""

    images_total: int = 0
    images_out_of_scope: int = 0
    images_unmatched: int = 0
    images_invalid_id: int = 0
    images_matched: int = 0
    detections: int = 0
    classifications: int = 0

    @property
    def images_skipped(self) -> int:
        return self.images_out_of_scope + self.images_unmatched + self.images_invalid_id


def _parse_catalog_id(raw_id: Any) -> int | None:
    if isinstance(raw_id, bool):
        return None
    try:
        return int(str(raw_id).strip())
    except (TypeError, ValueError):
        return None


class DetectionIngestPipeline:
    """Full-replace ingestion of one detector report.

    Stages run in a fixed order: schema_ready, categories_populated,
    index_built, images_reconciled, written, indices_finalized, done. There is
    no rollback; a failed run is recovered by running again.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or load_settings()
        self._logger = get_logger(__name__, extra={"component": "detection_ingest"})
        self.stage = "idle"

    def _enter_stage(self, stage: str, **details: Any) -> None:
        self.stage = stage
        self._logger.info("detection_ingest_stage", extra={"stage": stage, **details})

    def run(
        self,
        detector_output: DetectorOutput | None,
        session: Session | None,
        path_prefix_for_truncation: str | None = _UNSET,
    ) -> IngestSummary:
        """Replace the detection tables with the contents of ``detector_output``.

        Args:
            detector_output: Parsed detector report.
            session: Session bound to the catalog database.
            path_prefix_for_truncation: Prefix stripped from reported paths;
                paths without it are out of scope. Defaults to the configured
                ``ingest.path_prefix_for_truncation``.

        Returns:
            Counts of matched and skipped images and of written rows.

        Raises:
            ValueError: If any argument is ``None``. Nothing is written in that case.
        """

        if path_prefix_for_truncation is _UNSET:
            path_prefix_for_truncation = self._settings.ingest.path_prefix_for_truncation
        if detector_output is None:
            raise ValueError("detector_output must be provided")
        if session is None:
            raise ValueError("session must be provided")
        if path_prefix_for_truncation is None:
            raise ValueError("path_prefix_for_truncation must be a string (use '' for no truncation)")

        started = time.time()
        separator = self._settings.ingest.path_separator
        store = DetectionStore(session)
        catalog = CatalogDatabase(session, separator=separator)
        schema = SchemaManager(store, catalog)

        self._logger.info(
            "detection_ingest_start",
            extra={
                "images": len(detector_output.images),
                "detector": detector_output.info.detector,
                "prefix": path_prefix_for_truncation,
            },
        )

        tables_created = schema.prepare_schema()
        self._enter_stage("schema_ready", tables_created=tables_created)

        self._populate_info_and_categories(store, detector_output)
        self._enter_stage("categories_populated")

        index = CatalogIndex.build(catalog.query_all(CATALOG_KEY_COLUMNS))
        self._enter_stage("index_built", catalog_rows=len(index))

        summary = IngestSummary(images_total=len(detector_output.images))
        writer = SequentialKeyWriter()
        for image in detector_output.images:
            self._reconcile_image(image, index, writer, summary, path_prefix_for_truncation, separator)
        self._enter_stage("images_reconciled", matched=summary.images_matched, skipped=summary.images_skipped)

        summary.detections = store.bulk_insert(DetectionRow.__table__, writer.detection_rows)
        summary.classifications = store.bulk_insert(ClassificationRow.__table__, writer.classification_rows)
        session.commit()
        self._enter_stage("written", detections=summary.detections, classifications=summary.classifications)

        schema.finalize_indices()
        self._enter_stage("indices_finalized")

        self._enter_stage("done")
        self._logger.info(
            "detection_ingest_complete",
            extra={**asdict(summary), "elapsed_sec": round(time.time() - started, 3)},
        )
        return summary

    def _populate_info_and_categories(self, store: DetectionStore, detector_output: DetectorOutput) -> None:
        info = detector_output.info
        store.bulk_insert(
            DetectionInfo.__table__,
            [
                {
                    "info_id": INFO_ROW_ID,
                    "detector": info.detector,
                    "detection_completion_time": info.detection_completion_time,
                    "classifier": info.classifier,
                    "classification_completion_time": info.classification_completion_time,
                }
            ],
        )
        store.bulk_insert(
            DetectionCategory.__table__,
            reconcile_detection_categories(detector_output.detection_categories),
        )
        store.bulk_insert(
            ClassificationCategory.__table__,
            reconcile_classification_categories(detector_output.classification_categories),
        )
        store.session.commit()

    def _reconcile_image(
        self,
        image: DetectorImage,
        index: CatalogIndex,
        writer: SequentialKeyWriter,
        summary: IngestSummary,
        prefix: str,
        separator: str,
    ) -> None:
        key = normalize_detector_path(image.file, prefix, separator)
        if key is None:
            summary.images_out_of_scope += 1
            self._logger.debug("detection_image_skipped", extra={"file": image.file, "reason": "out_of_scope"})
            return

        raw_id = index.lookup(*key)
        if raw_id is None:
            # The file was removed from the catalog after detection ran.
            summary.images_unmatched += 1
            self._logger.debug("detection_image_skipped", extra={"file": image.file, "reason": "not_in_catalog"})
            return

        image_id = _parse_catalog_id(raw_id)
        if image_id is None:
            summary.images_invalid_id += 1
            self._logger.warning("detection_image_invalid_catalog_id", extra={"file": image.file, "id": repr(raw_id)})
            return

        summary.images_matched += 1
        if not image.detections:
            writer.add_placeholder(image_id)
            return

        for detection in image.detections:
            writer.add_detection(image_id, detection)


def ingest_detector_file(
    report_path: Path | str,
    target: Path | str | None = None,
    settings: Settings | None = None,
    path_prefix_for_truncation: str | None = None,
) -> IngestSummary:
    """Load a report file and ingest it into the catalog database at ``target``."""

    settings = settings or load_settings()
    detector_output = load_detector_output(report_path, apply_defaults=settings.ingest.apply_default_categories)
    prefix = (
        path_prefix_for_truncation
        if path_prefix_for_truncation is not None
        else settings.ingest.path_prefix_for_truncation
    )

    with open_session(target or settings.databases.url) as session:
        pipeline = DetectionIngestPipeline(settings=settings)
        return pipeline.run(detector_output, session, prefix)


__all__ = ["IngestSummary", "DetectionIngestPipeline", "ingest_detector_file"]
