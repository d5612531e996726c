"""Fetch-completed command: download the latest completed schema."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from schemasync.cli.options import fail, open_store
from schemasync.core.config import StoreSettings
from schemasync.sync.resolver import fetch_latest_completed
from schemasync.sync.types import SchemaSyncError

logger = logging.getLogger(__name__)


@click.command("fetch-completed")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    default=None,
    help="Output file path (default: stdout).",
)
@click.pass_obj
def fetch_completed(settings: StoreSettings, output: Path | None) -> None:
    """Fetch the latest completed schema from the object store."""
    if not settings.tracks_completion:
        fail("fetch-completed needs completion markers, but --completed-file is empty")

    store = open_store(settings)
    try:
        _, schema = fetch_latest_completed(store, settings)
    except SchemaSyncError as e:
        fail(e)

    if output is None:
        stdout = click.get_binary_stream("stdout")
        stdout.write(schema)
        stdout.flush()
        return

    try:
        output.write_bytes(schema)
    except OSError as e:
        fail(f"Failed to write schema to file: {e}")
    logger.info("Schema written to file %s", output)
