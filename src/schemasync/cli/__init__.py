"""Command-line interface for db-schema-sync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- watch: Poll the object store and apply new schema versions continuously
- apply: Apply the latest schema version once and exit
- plan: Show the DDL a local schema file would produce (no database)
- fetch-completed: Download the latest completed schema

AWS credentials come from the standard boto3 chain (AWS_ACCESS_KEY_ID,
AWS_SECRET_ACCESS_KEY, AWS_SESSION_TOKEN, AWS profiles, or an instance
role on EC2, ECS and EKS).
"""

from __future__ import annotations

import click

from schemasync.cli.apply import apply
from schemasync.cli.fetch import fetch_completed
from schemasync.cli.options import store_options
from schemasync.cli.plan import plan
from schemasync.cli.watch import watch
from schemasync.core.config import StoreSettings
from schemasync.core.log import setup_logging


@click.group()
@click.version_option(package_name="db-schema-sync")
@click.option(
    "--log-level",
    envvar="LOG_LEVEL",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Log level.",
)
@store_options
@click.pass_context
def cli(
    ctx: click.Context,
    log_level: str,
    s3_bucket: str,
    s3_endpoint: str | None,
    s3_region: str | None,
    s3_timeout: float,
    path_prefix: str,
    schema_file: str,
    completed_file: str,
    local_store_path: str | None,
) -> None:
    """Synchronize database schemas from S3 using psqldef."""
    setup_logging(log_level)
    ctx.obj = StoreSettings(
        bucket=s3_bucket,
        path_prefix=path_prefix,
        schema_file=schema_file,
        completed_file=completed_file,
        endpoint_url=s3_endpoint or None,
        region=s3_region or None,
        timeout=s3_timeout,
        local_path=local_store_path or None,
    )


cli.add_command(watch)
cli.add_command(apply)
cli.add_command(plan)
cli.add_command(fetch_completed)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = ["cli", "main"]
