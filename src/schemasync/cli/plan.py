"""Plan command: preview the DDL for a local schema file, offline."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from schemasync.cli.options import differ_options, fail, open_store
from schemasync.core.config import StoreSettings
from schemasync.sync.applier import plan_offline
from schemasync.sync.resolver import load_plan_baseline
from schemasync.sync.types import SchemaSyncError

logger = logging.getLogger(__name__)


@click.command()
@click.argument("local_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@differ_options
@click.pass_obj
def plan(
    settings: StoreSettings, local_file: Path, psqldef_path: str, command_timeout: float
) -> None:
    """Show the DDL that applying LOCAL_FILE would run.

    The current state is the exported.sql of the latest completed version
    (or its schema file if nothing was exported). No database is touched.
    """
    if not settings.tracks_completion:
        fail("plan needs completion markers, but --completed-file is empty")

    store = open_store(settings)
    try:
        _, current, _ = load_plan_baseline(store, settings)
        desired = local_file.read_bytes()
        logger.info("Using local file as desired state: %s", local_file)
        ddl = plan_offline(current, desired, differ=psqldef_path, timeout=command_timeout)
    except (SchemaSyncError, OSError) as e:
        fail(e)

    click.echo(ddl, nl=False)
