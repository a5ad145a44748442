"""SQLAlchemy schema definitions, relational store helpers, and session management."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from threading import Lock
from typing import Any

from sqlalchemy import (
    Float,
    ForeignKey,
    Integer,
    String,
    Table,
    create_engine,
    delete,
    event,
    insert,
    inspect,
)
from sqlalchemy.engine import Engine, Row
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, relationship
from sqlalchemy.sql.expression import Executable

from detection_ingest.db_helpers import normalize_database_url, sqlite_file_from_url
from utils.logging import get_logger

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class FileData(Base):
    """Catalog row for one image file, keyed naturally by (file, relative_path).

    The catalog owns this table; detection ingestion only reads it and hangs
    detections off its primary key.
    """

    __tablename__ = "file_data"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    file: Mapped[str] = mapped_column(String, nullable=False)
    relative_path: Mapped[str] = mapped_column(String, nullable=False, default="")

    detections: Mapped[list["DetectionRow"]] = relationship(
        back_populates="image",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class DetectionInfo(Base):
    """Detector and classifier provenance; a single row with a fixed key."""

    __tablename__ = "detection_info"

    info_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    detector: Mapped[str | None] = mapped_column(String, nullable=True)
    detection_completion_time: Mapped[str | None] = mapped_column(String, nullable=True)
    classifier: Mapped[str | None] = mapped_column(String, nullable=True)
    classification_completion_time: Mapped[str | None] = mapped_column(String, nullable=True)


class DetectionCategory(Base):
    """Detection category code and its human-readable label."""

    __tablename__ = "detection_categories"

    category: Mapped[str] = mapped_column(String, primary_key=True)
    label: Mapped[str] = mapped_column(String, nullable=False, default="")


class ClassificationCategory(Base):
    """Classification category code and its human-readable label."""

    __tablename__ = "classification_categories"

    category: Mapped[str] = mapped_column(String, primary_key=True)
    label: Mapped[str] = mapped_column(String, nullable=False, default="")


class DetectionRow(Base):
    """One detected object (or the no-detection placeholder) for a catalog image.

    ``bbox`` holds ``"x, y, w, h"`` or an empty string when the detector gave
    no usable box.
    """

    __tablename__ = "detections"

    detection_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    conf: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    bbox: Mapped[str] = mapped_column(String, nullable=False, default="")
    image_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("file_data.id", ondelete="CASCADE"), nullable=False
    )

    image: Mapped[FileData] = relationship(back_populates="detections")
    classifications: Mapped[list["ClassificationRow"]] = relationship(
        back_populates="detection",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ClassificationRow(Base):
    """Finer-grained label attached to a detection."""

    __tablename__ = "classifications"

    classification_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    conf: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    detection_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("detections.detection_id", ondelete="CASCADE"), nullable=False
    )

    detection: Mapped[DetectionRow] = relationship(back_populates="classifications")


# Parents before children; clearing walks this list backwards.
DETECTION_TABLES: tuple[Table, ...] = (
    DetectionInfo.__table__,
    DetectionCategory.__table__,
    ClassificationCategory.__table__,
    DetectionRow.__table__,
    ClassificationRow.__table__,
)


_ENGINE_CACHE: dict[str, Engine] = {}
_ENGINE_LOCK = Lock()


def _ensure_parent_directory(path: Path) -> None:
    """Ensure the parent directory for a database file exists."""

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.error("db_parent_directory_error", extra={"path": str(path), "error": str(exc)})
        raise


def _get_engine(target: str | Path) -> Engine:
    """Return a cached SQLAlchemy engine for the target, creating the catalog table if needed.

    Detection tables are not created here; their lifecycle belongs to
    :class:`detection_ingest.schema.SchemaManager`.
    """

    normalized = normalize_database_url(target)
    engine = _ENGINE_CACHE.get(normalized)
    if engine is not None:
        return engine

    with _ENGINE_LOCK:
        engine = _ENGINE_CACHE.get(normalized)
        if engine is not None:
            return engine

        sa_url = make_url(normalized)
        is_sqlite = sa_url.drivername.startswith("sqlite")

        engine_kwargs: dict[str, object] = {}
        if is_sqlite:
            db_file = sqlite_file_from_url(normalized)
            if db_file is not None:
                _ensure_parent_directory(db_file)
            engine_kwargs["connect_args"] = {"timeout": 30.0}
        else:
            engine_kwargs["pool_pre_ping"] = True

        engine = create_engine(normalized, **engine_kwargs)

        if is_sqlite:

            @event.listens_for(engine, "connect")
            def _set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:  # type: ignore[override]
                """Enable cascading foreign keys and WAL on every new SQLite connection."""

                cursor = dbapi_connection.cursor()
                try:
                    cursor.execute("PRAGMA journal_mode=WAL")
                    cursor.execute("PRAGMA busy_timeout = 30000")
                    cursor.execute("PRAGMA foreign_keys = ON")
                finally:
                    cursor.close()

        try:
            Base.metadata.create_all(engine, tables=[FileData.__table__])
        except OperationalError as exc:
            # Another process may create the table between the existence check
            # and CREATE TABLE.
            message = str(exc).lower()
            if "already exists" in message:
                LOGGER.info("db_create_catalog_table_exists_race", extra={"target": normalized, "error": str(exc)})
            else:
                raise

        _ENGINE_CACHE[normalized] = engine
        return engine


def open_session(target: str | Path) -> Session:
    """Open a SQLAlchemy session on the catalog database."""

    engine = _get_engine(target)
    return Session(engine)


class DetectionStore:
    """Thin table-level API over a session: existence checks, DDL, clears, and bulk inserts."""

    def __init__(self, session: Session) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    def table_exists(self, name: str) -> bool:
        return inspect(self._session.connection()).has_table(name)

    def create_tables(self, tables: Sequence[Table]) -> None:
        Base.metadata.create_all(self._session.connection(), tables=list(tables))
        LOGGER.info("detection_tables_created", extra={"tables": [table.name for table in tables]})

    def clear_rows(self, tables: Iterable[Table]) -> None:
        cleared: list[str] = []
        for table in tables:
            self._session.execute(delete(table))
            cleared.append(table.name)
        LOGGER.info("detection_tables_cleared", extra={"tables": cleared})

    def bulk_insert(self, table: Table, rows: Sequence[Mapping[str, Any]]) -> int:
        """Insert all rows with a single executemany call and return the row count."""

        if not rows:
            return 0
        self._session.execute(insert(table), [dict(row) for row in rows])
        LOGGER.info("detection_rows_inserted", extra={"table": table.name, "count": len(rows)})
        return len(rows)

    def select(self, statement: Executable) -> list[Row[Any]]:
        return list(self._session.execute(statement).all())


__all__ = [
    "Base",
    "FileData",
    "DetectionInfo",
    "DetectionCategory",
    "ClassificationCategory",
    "DetectionRow",
    "ClassificationRow",
    "DETECTION_TABLES",
    "DetectionStore",
    "open_session",
]
