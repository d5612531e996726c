"""Watch command: poll the object store and apply new schema versions."""

from __future__ import annotations

import logging
import signal
import threading

import click

from schemasync.cli.options import (
    DURATION,
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
from schemasync.server.app import MetricsServer
from schemasync.server.metrics import SyncMetrics
from schemasync.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


@click.command()
@db_options
@click.option(
    "--interval",
    envvar="INTERVAL",
    type=DURATION,
    default="1m",
    show_default=True,
    help="Polling interval.",
)
@click.option(
    "--metrics-addr",
    envvar="METRICS_ADDR",
    default="",
    help="Metrics endpoint address (e.g. ':9090'). Metrics are not served if unset.",
)
@apply_options
@click.option(
    "--on-start", envvar="ON_START", default="", help="Command to run when the process starts."
)
@click.option(
    "--on-s3-fetch-error",
    envvar="ON_S3_FETCH_ERROR",
    default="",
    help="Command to run when fetching from S3 fails 3 or more times in a row.",
)
@apply_hook_options
@differ_options
@click.pass_obj
def watch(
    settings: StoreSettings,
    db_host: str,
    db_port: str,
    db_user: str,
    db_password: str,
    db_name: str,
    interval: float,
    metrics_addr: str,
    export_after_apply: bool,
    skip_lock: bool,
    on_start: str,
    on_s3_fetch_error: str,
    on_before_apply: str,
    on_apply_failed: str,
    on_apply_succeeded: str,
    psqldef_path: str,
    command_timeout: float,
) -> None:
    """Run as a daemon, polling for schema updates.

    Errors in a cycle are logged and retried after the interval. Stops on
    Ctrl+C or SIGTERM.
    """
    metrics = SyncMetrics()
    server: MetricsServer | None = None
    if metrics_addr:
        try:
            server = MetricsServer(metrics_addr, metrics)
            server.start()
        except (ValueError, RuntimeError) as e:
            fail(e)

    store = open_store(settings)
    db = build_database(db_host, db_port, db_user, db_password, db_name)
    hooks = HookCommands(
        on_start=on_start,
        on_fetch_error=on_s3_fetch_error,
        on_before_apply=on_before_apply,
        on_apply_failed=on_apply_failed,
        on_apply_succeeded=on_apply_succeeded,
    )
    options = build_sync_options(
        export_after_apply, skip_lock, psqldef_path, command_timeout, hooks
    )
    applier, lock_factory, dispatcher = build_components(db, options)
    orchestrator = SyncOrchestrator(
        store, settings, applier, lock_factory, dispatcher, options, metrics=metrics
    )

    stop = threading.Event()
    signal.signal(signal.SIGTERM, lambda signum, frame: stop.set())

    orchestrator.announce_start()
    logger.info("Watching %s every %ss", store.location, interval)
    try:
        orchestrator.run_forever(interval, stop_event=stop)
    except KeyboardInterrupt:
        pass
    finally:
        logger.info("Stopping")
        if server:
            server.stop()
