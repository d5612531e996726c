"""Core module - Shared configuration, enums and version ordering."""

from schemasync.core.config import (
    DEFAULT_COMPLETED_FILE,
    DEFAULT_SCHEMA_FILE,
    EXPORTED_FILE,
    DatabaseConfig,
    HookCommands,
    StoreSettings,
    SyncOptions,
)
from schemasync.core.log import setup_logging
from schemasync.core.types import HookPoint, LockStatus, SkipReason, SyncOutcome
from schemasync.core.versions import (
    InvalidVersionError,
    Version,
    compare_versions,
    find_max_version,
    parse_version,
)

__all__ = [
    # Config
    "DEFAULT_COMPLETED_FILE",
    "DEFAULT_SCHEMA_FILE",
    "EXPORTED_FILE",
    "DatabaseConfig",
    "HookCommands",
    "StoreSettings",
    "SyncOptions",
    # Logging
    "setup_logging",
    # Types
    "HookPoint",
    "LockStatus",
    "SkipReason",
    "SyncOutcome",
    # Versions
    "InvalidVersionError",
    "Version",
    "compare_versions",
    "find_max_version",
    "parse_version",
]
