"""CLI entrypoint for loading detector reports into the catalog database."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from detection_ingest.catalog import CatalogDatabase
from detection_ingest.config import Settings, load_settings
from detection_ingest.db import DetectionStore, open_session
from detection_ingest.pipeline import ingest_detector_file
from detection_ingest.schema import SchemaManager
from utils.logging import get_logger


LOGGER = get_logger(__name__)

app = typer.Typer(help="Load detector run reports into the image catalog database.")


def _apply_cli_overrides(settings: Settings, prefix: Optional[str], apply_defaults: Optional[bool]) -> Settings:
    """Apply CLI overrides for the truncation prefix and default vocabularies."""

    if prefix is not None:
        settings.ingest.path_prefix_for_truncation = prefix
    if apply_defaults is not None:
        settings.ingest.apply_default_categories = apply_defaults
    return settings


@app.command("run")
def run(
    report: Path = typer.Argument(
        ...,
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
        help="Detector report JSON file.",
    ),
    db: Optional[str] = typer.Option(
        None,
        "--db",
        help="Catalog database URL or SQLite path. Defaults to databases.url in settings.yaml.",
    ),
    prefix: Optional[str] = typer.Option(
        None,
        "--prefix",
        help="Path prefix stripped from reported files; files outside it are skipped.",
    ),
    apply_defaults: Optional[bool] = typer.Option(
        None,
        "--apply-defaults/--no-apply-defaults",
        help="Fill missing info and category vocabularies with the legacy defaults.",
    ),
) -> None:
    """Replace all detection tables with the contents of REPORT."""

    settings = _apply_cli_overrides(load_settings(), prefix=prefix, apply_defaults=apply_defaults)
    target = db or settings.databases.url

    summary = ingest_detector_file(report, target, settings=settings)
    typer.echo(
        f"matched={summary.images_matched} skipped={summary.images_skipped} "
        f"detections={summary.detections} classifications={summary.classifications}"
    )


@app.command("clear")
def clear(
    db: Optional[str] = typer.Option(
        None,
        "--db",
        help="Catalog database URL or SQLite path. Defaults to databases.url in settings.yaml.",
    ),
) -> None:
    """Remove detections, classifications and their categories, keeping run info."""

    settings = load_settings()
    target = db or settings.databases.url
    with open_session(target) as session:
        schema = SchemaManager(DetectionStore(session), CatalogDatabase(session, settings.ingest.path_separator))
        schema.clear_detection_tables()
    LOGGER.info("detection_tables_clear_complete", extra={"target": str(target)})


def main() -> None:
    """Entrypoint used when invoking the module as a script."""

    app()


if __name__ == "__main__":
    main()


__all__ = ["app", "main"]
