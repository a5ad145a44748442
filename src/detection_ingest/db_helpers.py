"""Shared helpers for database URLs."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy.engine.url import make_url


def normalize_database_url(target: str | Path) -> str:
    """Normalize database URL or path inputs to absolute URLs."""

    if isinstance(target, Path):
        return f"sqlite:///{target.resolve()}"

    raw = str(target).strip()
    if not raw:
        raise ValueError("database target cannot be empty")

    if "://" not in raw:
        return f"sqlite:///{Path(raw).resolve()}"

    url = make_url(raw)
    if url.drivername.startswith("sqlite"):
        database = url.database or ""
        if database not in {":memory:", ""}:
            db_path = Path(database)
            if not db_path.is_absolute():
                db_path = (Path.cwd() / db_path).resolve()
            url = url.set(database=str(db_path))
        return str(url)

    return raw


def sqlite_file_from_url(url: str) -> Path | None:
    """Return the database file behind a normalized SQLite URL, if there is one."""

    sa_url = make_url(url)
    if not sa_url.drivername.startswith("sqlite"):
        return None

    database = sa_url.database or ""
    if database in {"", ":memory:"}:
        return None
    return Path(database)


__all__ = [
    "normalize_database_url",
    "sqlite_file_from_url",
]
