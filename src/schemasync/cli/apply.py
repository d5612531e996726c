"""Apply command: apply the latest schema version once and exit."""

from __future__ import annotations

import logging

import click

from schemasync.cli.options import (
    apply_hook_options,
    apply_options,
    build_components,
    build_database,
    build_sync_options,
    db_options,
    differ_options,
    fail,
    open_store,
)
from schemasync.core.config import HookCommands, StoreSettings
from schemasync.core.types import SyncOutcome
from schemasync.sync.orchestrator import SyncOrchestrator
from schemasync.sync.types import SchemaSyncError

logger = logging.getLogger(__name__)


@click.command()
@db_options
@apply_options
@apply_hook_options
@differ_options
@click.pass_obj
def apply(
    settings: StoreSettings,
    db_host: str,
    db_port: str,
    db_user: str,
    db_password: str,
    db_name: str,
    export_after_apply: bool,
    skip_lock: bool,
    on_before_apply: str,
    on_apply_failed: str,
    on_apply_succeeded: str,
    psqldef_path: str,
    command_timeout: float,
) -> None:
    """Apply the latest schema once and exit.

    Exits non-zero if the schema could not be resolved, downloaded or
    applied. Skipping (already completed, or another instance holds the
    lock) is a success.
    """
    store = open_store(settings)
    db = build_database(db_host, db_port, db_user, db_password, db_name)
    hooks = HookCommands(
        on_before_apply=on_before_apply,
        on_apply_failed=on_apply_failed,
        on_apply_succeeded=on_apply_succeeded,
    )
    options = build_sync_options(
        export_after_apply, skip_lock, psqldef_path, command_timeout, hooks
    )
    applier, lock_factory, dispatcher = build_components(db, options)
    orchestrator = SyncOrchestrator(store, settings, applier, lock_factory, dispatcher, options)

    try:
        result = orchestrator.run_cycle()
    except SchemaSyncError as e:
        fail(e)

    if result.outcome is SyncOutcome.SKIPPED:
        logger.info("Nothing applied (%s)", result.reason.value if result.reason else "skipped")
