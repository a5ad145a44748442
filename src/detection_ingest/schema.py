"""Create-or-clear lifecycle for the five detection tables."""

from __future__ import annotations

from detection_ingest.catalog import CatalogDatabase
from detection_ingest.db import (
    DETECTION_TABLES,
    ClassificationCategory,
    ClassificationRow,
    DetectionCategory,
    DetectionInfo,
    DetectionRow,
    DetectionStore,
)
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "schema"})


class SchemaManager:
    """Prepare detection tables before a run and finalize their indices after the bulk load."""

    def __init__(self, store: DetectionStore, catalog: CatalogDatabase) -> None:
        self._store = store
        self._catalog = catalog

    def prepare_schema(self) -> bool:
        """Create the detection tables, or clear them in place if a previous run created them.

        ``detection_info`` acts as the marker table. Returns ``True`` when the
        tables were created and ``False`` when existing rows were cleared.
        """

        if self._store.table_exists(DetectionInfo.__tablename__):
            self._store.clear_rows(reversed(DETECTION_TABLES))
            self._store.session.commit()
            return False

        self._store.create_tables(DETECTION_TABLES)
        self._store.session.commit()
        return True

    def clear_detection_tables(self) -> None:
        """Drop all categories, detections and classifications but keep run info."""

        if not self._store.table_exists(DetectionInfo.__tablename__):
            LOGGER.info("detection_tables_missing_nothing_to_clear", extra={})
            return

        self._store.clear_rows(
            [
                ClassificationRow.__table__,
                DetectionRow.__table__,
                ClassificationCategory.__table__,
                DetectionCategory.__table__,
            ]
        )
        self._store.session.commit()

    def finalize_indices(self) -> None:
        """Build the secondary indices once, after rows are loaded."""

        self._catalog.build_indices()


__all__ = ["SchemaManager"]
