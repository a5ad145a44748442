from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from sqlalchemy.orm import Session

from detection_ingest.config import Settings
from detection_ingest.db import open_session


@pytest.fixture()
def session(tmp_path: Path) -> Iterator[Session]:
    with open_session(tmp_path / "catalog.db") as db_session:
        yield db_session


@pytest.fixture()
def settings() -> Settings:
    return Settings()
