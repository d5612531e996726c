"""Shared CLI options and helpers.

Every option can also be set through the environment variable named in
its ``envvar``; the names are kept short and unprefixed so existing
deployments can be configured the same way as before.
"""

from __future__ import annotations

import functools
import logging
import re
import sys
from collections.abc import Callable
from typing import Any, NoReturn, TypeVar

import click

from schemasync.core.config import (
    DEFAULT_COMPLETED_FILE,
    DEFAULT_SCHEMA_FILE,
    DatabaseConfig,
    HookCommands,
    StoreSettings,
    SyncOptions,
)
from schemasync.storage import ObjectStore, create_store
from schemasync.sync.applier import DEFAULT_DIFFER, PsqldefApplier
from schemasync.sync.hooks import HookDispatcher
from schemasync.sync.lock import AdvisoryLock

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(text: str) -> float:
    """Parse a duration such as ``90s``, ``1m``, ``1h30m`` or ``500ms``.

    A bare number is taken as seconds.

    Returns:
        The duration in seconds.

    Raises:
        ValueError: If text is not a valid, non-negative duration.
    """
    text = text.strip()
    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        if seconds < 0:
            raise ValueError(f"Duration must not be negative: {text!r}")
        return seconds

    pos = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if not text or pos != len(text):
        raise ValueError(f"Invalid duration: {text!r}")
    return total


class Duration(click.ParamType):
    """Click parameter type for durations, converted to seconds."""

    name = "duration"

    def convert(
        self, value: Any, param: click.Parameter | None, ctx: click.Context | None
    ) -> float:
        if isinstance(value, (int, float)):
            return float(value)
        try:
            return parse_duration(value)
        except ValueError as e:
            self.fail(str(e), param, ctx)


DURATION = Duration()


def fail(message: object) -> NoReturn:
    """Print an error and exit with status 1."""
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


# === Option groups ===


def db_options(f: F) -> F:
    """Connection options for the target database."""
    decorators = [
        click.option("--db-host", envvar="DB_HOST", required=True, help="Database host."),
        click.option("--db-port", envvar="DB_PORT", required=True, help="Database port."),
        click.option("--db-user", envvar="DB_USER", required=True, help="Database user."),
        click.option(
            "--db-password", envvar="DB_PASSWORD", required=True, help="Database password."
        ),
        click.option("--db-name", envvar="DB_NAME", required=True, help="Database name."),
    ]
    for decorator in reversed(decorators):
        f = decorator(f)
    return f


def differ_options(f: F) -> F:
    """psqldef location and per-invocation timeout."""
    f = click.option(
        "--command-timeout",
        envvar="COMMAND_TIMEOUT",
        type=DURATION,
        default="10m",
        show_default=True,
        help="Timeout for psqldef and hook commands.",
    )(f)
    f = click.option(
        "--psqldef-path",
        envvar="PSQLDEF_PATH",
        default=DEFAULT_DIFFER,
        show_default=True,
        help="psqldef executable.",
    )(f)
    return f


def apply_options(f: F) -> F:
    """Export/lock switches shared by watch and apply."""
    f = click.option(
        "--skip-lock",
        envvar="SKIP_LOCK",
        is_flag=True,
        help="Skip the advisory lock (not recommended for production).",
    )(f)
    f = click.option(
        "--export-after-apply",
        envvar="EXPORT_AFTER_APPLY",
        is_flag=True,
        help="Export the schema after a successful apply and upload it as exported.sql.",
    )(f)
    return f


def apply_hook_options(f: F) -> F:
    """Hooks run around an apply."""
    f = click.option(
        "--on-apply-succeeded",
        envvar="ON_APPLY_SUCCEEDED",
        default="",
        help="Command to run after the schema is successfully applied.",
    )(f)
    f = click.option(
        "--on-apply-failed",
        envvar="ON_APPLY_FAILED",
        default="",
        help="Command to run when schema application fails.",
    )(f)
    f = click.option(
        "--on-before-apply",
        envvar="ON_BEFORE_APPLY",
        default="",
        help="Command to run before schema application starts.",
    )(f)
    return f


def store_options(f: F) -> F:
    """Object store options, declared on the command group."""
    decorators = [
        click.option("--s3-bucket", envvar="S3_BUCKET", default="", help="S3 bucket name."),
        click.option(
            "--s3-endpoint",
            envvar="S3_ENDPOINT",
            default=None,
            help="Custom S3 endpoint URL for S3-compatible storage.",
        ),
        click.option("--s3-region", envvar="S3_REGION", default=None, help="S3 region."),
        click.option(
            "--s3-timeout",
            envvar="S3_TIMEOUT",
            type=DURATION,
            default="30s",
            show_default=True,
            help="Connect/read timeout for S3 requests.",
        ),
        click.option(
            "--path-prefix",
            envvar="PATH_PREFIX",
            default="",
            help="Key prefix holding the version directories (e.g. 'schemas/').",
        ),
        click.option(
            "--schema-file",
            envvar="SCHEMA_FILE",
            default=DEFAULT_SCHEMA_FILE,
            show_default=True,
            help="Schema file name.",
        ),
        click.option(
            "--completed-file",
            envvar="COMPLETED_FILE",
            default=DEFAULT_COMPLETED_FILE,
            show_default=True,
            help="Completion marker file name (empty disables markers).",
        ),
        click.option(
            "--local-store-path",
            envvar="LOCAL_STORE_PATH",
            type=click.Path(file_okay=False),
            default=None,
            help="Use a local directory instead of S3 (development).",
        ),
    ]
    for decorator in reversed(decorators):
        f = decorator(f)
    return f


# === Builders ===


def open_store(settings: StoreSettings) -> ObjectStore:
    """Validate the store settings and open the store.

    Raises:
        click.UsageError: If the bucket or prefix is missing.
    """
    if not settings.local_path and not settings.bucket:
        raise click.UsageError("Missing option '--s3-bucket' (or S3_BUCKET).")
    if not settings.path_prefix:
        raise click.UsageError("Missing option '--path-prefix' (or PATH_PREFIX).")

    if settings.endpoint_url:
        logger.info("Using custom S3 endpoint: %s", settings.endpoint_url)
    store = create_store(settings)
    logger.debug("Using object store %s", store.location)
    return store


def build_database(
    db_host: str, db_port: str, db_user: str, db_password: str, db_name: str
) -> DatabaseConfig:
    return DatabaseConfig(
        host=db_host, port=db_port, user=db_user, password=db_password, name=db_name
    )


def build_sync_options(
    export_after_apply: bool,
    skip_lock: bool,
    psqldef_path: str,
    command_timeout: float,
    hooks: HookCommands,
) -> SyncOptions:
    return SyncOptions(
        export_after_apply=export_after_apply,
        skip_lock=skip_lock,
        differ_path=psqldef_path,
        command_timeout=command_timeout,
        hooks=hooks,
    )


def build_components(
    db: DatabaseConfig, options: SyncOptions
) -> tuple[PsqldefApplier, Callable[[], AdvisoryLock] | None, HookDispatcher]:
    """Create the applier, lock factory and hook dispatcher for a run."""
    applier = PsqldefApplier(db, differ=options.differ_path, timeout=options.command_timeout)
    if options.skip_lock:
        logger.warning("Advisory lock disabled, concurrent applies are not prevented")
        lock_factory = None
    else:
        lock_factory = functools.partial(AdvisoryLock.for_database, db)
    hooks = HookDispatcher.from_commands(options.hooks, timeout=options.command_timeout)
    return applier, lock_factory, hooks
