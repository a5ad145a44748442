"""Catalog collaborator and the per-run (file, relative_path) -> id lookup."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from types import MappingProxyType
from typing import Any

from sqlalchemy import select, text
from sqlalchemy.orm import Session

from detection_ingest.db import FileData
from detection_ingest.paths import CatalogKey, split_catalog_path
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "catalog"})

CATALOG_KEY_COLUMNS: tuple[str, str, str] = ("id", "file", "relative_path")

# (index name, table, column); created once after the detection bulk load.
DETECTION_INDICES: tuple[tuple[str, str, str], ...] = (
    ("idx_detections_image_id", "detections", "image_id"),
    ("idx_detections_category", "detections", "category"),
    ("idx_classifications_detection_id", "classifications", "detection_id"),
)


class CatalogIndex:
    """Immutable exact-match lookup from ``(file, relative_path)`` to the catalog row id."""

    def __init__(self, entries: Mapping[CatalogKey, Any]) -> None:
        self._entries: Mapping[CatalogKey, Any] = MappingProxyType(dict(entries))

    @classmethod
    def build(cls, rows: Iterable[Sequence[Any]]) -> "CatalogIndex":
        """Build the index from ``(id, file, relative_path)`` rows; the first row wins on duplicates."""

        entries: dict[CatalogKey, Any] = {}
        duplicates = 0
        for row_id, file_name, relative_path in rows:
            key = (str(file_name), "" if relative_path is None else str(relative_path))
            if key in entries:
                duplicates += 1
                continue
            entries[key] = row_id

        if duplicates:
            LOGGER.warning("catalog_index_duplicate_keys", extra={"duplicates": duplicates})
        return cls(entries)

    def lookup(self, file_name: str, relative_path: str) -> Any | None:
        return self._entries.get((file_name, relative_path))

    def __len__(self) -> int:
        return len(self._entries)


class CatalogDatabase:
    """Read side of the image catalog plus the index builder used after detection loads."""

    def __init__(self, session: Session, separator: str = "/") -> None:
        self._session = session
        self._separator = separator

    def query_all(self, columns: Sequence[str] = CATALOG_KEY_COLUMNS) -> list[tuple[Any, ...]]:
        """Return every catalog row projected onto ``columns``, ordered by id."""

        table = FileData.__table__
        unknown = [name for name in columns if name not in table.c]
        if unknown:
            raise ValueError(f"Unknown catalog columns: {unknown}")

        stmt = select(*(table.c[name] for name in columns)).order_by(table.c.id)
        return [tuple(row) for row in self._session.execute(stmt).all()]

    def add_file(self, path: str) -> FileData:
        """Register a catalog-relative path, split the same way detector paths are."""

        file_name, relative_path = split_catalog_path(path, self._separator)
        row = FileData(file=file_name, relative_path=relative_path)
        self._session.add(row)
        self._session.flush()
        return row

    def build_indices(self) -> None:
        """Create the secondary indices over the detection foreign keys, if missing."""

        for name, table, column in DETECTION_INDICES:
            self._session.execute(text(f"CREATE INDEX IF NOT EXISTS {name} ON {table} ({column})"))
        self._session.commit()
        LOGGER.info("catalog_detection_indices_built", extra={"indices": [name for name, _, _ in DETECTION_INDICES]})


__all__ = ["CATALOG_KEY_COLUMNS", "DETECTION_INDICES", "CatalogIndex", "CatalogDatabase"]
