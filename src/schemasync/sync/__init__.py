"""Schema synchronization engine.

Architecture:
    VersionResolver → CompletionTracker → AdvisoryLock → PsqldefApplier

Components:
- **VersionResolver**: Lists the object store and picks the newest version
- **CompletionTracker**: Reads and writes per-version completion markers
- **AdvisoryLock**: PostgreSQL advisory lock serializing applies per database
- **PsqldefApplier**: Plans, applies and exports schemas with psqldef
- **HookDispatcher**: Runs operator commands at lifecycle points
- **FailureTracker**: Counts consecutive fetch failures for escalation
- **SyncOrchestrator**: Runs one cycle, or loops forever in watch mode
"""

from schemasync.sync.applier import PsqldefApplier, SchemaApplier, plan_offline
from schemasync.sync.failures import DEFAULT_FAILURE_THRESHOLD, FailureTracker
from schemasync.sync.hooks import ENV_PREFIX, Hook, HookContext, HookDispatcher, ShellHook
from schemasync.sync.lock import ADVISORY_LOCK_ID, AdvisoryLock, ApplyLock
from schemasync.sync.markers import (
    CompletionTracker,
    build_exported_key,
    build_marker_key,
)
from schemasync.sync.orchestrator import SyncOrchestrator
from schemasync.sync.resolver import (
    VersionResolver,
    download,
    fetch_latest_completed,
    find_latest_completed_version,
    find_latest_version,
    load_plan_baseline,
)
from schemasync.sync.types import (
    ApplyError,
    ApplyResult,
    CycleResult,
    ExportError,
    FetchError,
    HookError,
    LockError,
    MarkerError,
    NoCandidatesError,
    NoValidVersionsError,
    PlanError,
    ResolutionError,
    ResolvedVersion,
    SchemaSyncError,
)

__all__ = [
    # Resolution
    "VersionResolver",
    "download",
    "fetch_latest_completed",
    "find_latest_completed_version",
    "find_latest_version",
    "load_plan_baseline",
    # Markers
    "CompletionTracker",
    "build_exported_key",
    "build_marker_key",
    # Locking
    "ADVISORY_LOCK_ID",
    "AdvisoryLock",
    "ApplyLock",
    # Applying
    "PsqldefApplier",
    "SchemaApplier",
    "plan_offline",
    # Hooks
    "ENV_PREFIX",
    "Hook",
    "HookContext",
    "HookDispatcher",
    "ShellHook",
    # Failures
    "DEFAULT_FAILURE_THRESHOLD",
    "FailureTracker",
    # Orchestration
    "SyncOrchestrator",
    # Types
    "ApplyError",
    "ApplyResult",
    "CycleResult",
    "ExportError",
    "FetchError",
    "HookError",
    "LockError",
    "MarkerError",
    "NoCandidatesError",
    "NoValidVersionsError",
    "PlanError",
    "ResolutionError",
    "ResolvedVersion",
    "SchemaSyncError",
]
