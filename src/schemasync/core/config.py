"""Configuration classes for schemasync.

This module defines the settings objects built by the CLI and consumed by
the storage layer, the applier and the sync orchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.engine import URL

from schemasync.core.types import HookPoint

DEFAULT_SCHEMA_FILE = "schema.sql"
DEFAULT_COMPLETED_FILE = "completed"
EXPORTED_FILE = "exported.sql"


@dataclass
class StoreSettings:
    """Where versioned schema files live.

    Attributes:
        bucket: Bucket name (S3) or a label for the local store.
        path_prefix: Key prefix holding one directory per version.
            Always normalized to end with "/" unless empty.
        schema_file: File name of the schema inside each version directory.
        completed_file: Name of the completion marker. An empty string
            disables completion tracking.
        endpoint_url: Custom S3 endpoint (MinIO, Ceph, ...).
        region: S3 region; None uses the boto3 default chain.
        timeout: Connect/read timeout for S3 requests, in seconds.
        local_path: Use this directory instead of S3 (development/testing).
    """

    bucket: str
    path_prefix: str
    schema_file: str = DEFAULT_SCHEMA_FILE
    completed_file: str = DEFAULT_COMPLETED_FILE
    endpoint_url: str | None = None
    region: str | None = None
    timeout: float = 30.0
    local_path: str | None = None

    def __post_init__(self) -> None:
        """Ensure the prefix ends with a slash."""
        if self.path_prefix and not self.path_prefix.endswith("/"):
            self.path_prefix += "/"

    @property
    def tracks_completion(self) -> bool:
        """Whether completion markers are read and written."""
        return bool(self.completed_file)


@dataclass
class DatabaseConfig:
    """Connection parameters for the target PostgreSQL database."""

    host: str
    port: str
    user: str
    password: str
    name: str
    connect_timeout: int = 10

    @property
    def url(self) -> URL:
        """SQLAlchemy URL for the psycopg driver."""
        return URL.create(
            "postgresql+psycopg",
            username=self.user,
            password=self.password,
            host=self.host,
            port=int(self.port),
            database=self.name,
        )

    def __repr__(self) -> str:
        return (
            f"DatabaseConfig(host={self.host!r}, port={self.port!r}, "
            f"user={self.user!r}, name={self.name!r})"
        )


@dataclass
class HookCommands:
    """Shell commands to run at lifecycle points (empty = disabled)."""

    on_start: str = ""
    on_fetch_error: str = ""
    on_before_apply: str = ""
    on_apply_failed: str = ""
    on_apply_succeeded: str = ""

    def as_mapping(self) -> dict[HookPoint, str]:
        """Map each configured hook point to its command."""
        commands = {
            HookPoint.START: self.on_start,
            HookPoint.FETCH_ERROR: self.on_fetch_error,
            HookPoint.BEFORE_APPLY: self.on_before_apply,
            HookPoint.APPLY_FAILED: self.on_apply_failed,
            HookPoint.APPLY_SUCCEEDED: self.on_apply_succeeded,
        }
        return {point: cmd for point, cmd in commands.items() if cmd}


@dataclass
class SyncOptions:
    """Behavior switches for a sync run."""

    export_after_apply: bool = False
    skip_lock: bool = False
    differ_path: str = "psqldef"
    command_timeout: float = 600.0
    hooks: HookCommands = field(default_factory=HookCommands)
