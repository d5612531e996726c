"""Synchronization cycle.

One cycle walks these steps, stopping at the first one that ends it:

    resolve latest      -> FetchError/ResolutionError (counts as fetch failure)
    compare versions    -> skip if not newer than the last applied version
    check marker        -> skip if the version is already completed
    download            -> FetchError (counts as fetch failure)
    acquire lock        -> skip if another instance holds it; LockError
    dry run             -> best effort
    before-apply hook
    apply               -> ApplyError (after the apply-failed hook)
    export              -> best effort
    mark completed      -> best effort
    apply-succeeded hook
    release lock        -> best effort

The failure count and the last-applied cache live on the orchestrator
instance and are never persisted; completion markers in the object store
are what survives a restart.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from schemasync import __version__
from schemasync.core.types import HookPoint, LockStatus, SkipReason
from schemasync.core.versions import compare_versions
from schemasync.server.metrics import SyncMetrics
from schemasync.storage import StorageError
from schemasync.sync.failures import FailureTracker
from schemasync.sync.hooks import HookContext, HookDispatcher
from schemasync.sync.markers import CompletionTracker, build_exported_key
from schemasync.sync.resolver import VersionResolver, download
from schemasync.sync.types import (
    ApplyError,
    CycleResult,
    ExportError,
    LockError,
    MarkerError,
    PlanError,
    ResolvedVersion,
    SchemaSyncError,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from schemasync.core.config import StoreSettings, SyncOptions
    from schemasync.storage import ObjectStore
    from schemasync.sync.applier import SchemaApplier
    from schemasync.sync.lock import ApplyLock

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """Runs synchronization cycles against one store and one database."""

    def __init__(
        self,
        store: ObjectStore,
        settings: StoreSettings,
        applier: SchemaApplier,
        lock_factory: Callable[[], ApplyLock] | None,
        hooks: HookDispatcher | None,
        options: SyncOptions,
        metrics: SyncMetrics | None = None,
        failure_tracker: FailureTracker | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Object store holding the schema versions.
            settings: Store layout settings.
            applier: Differ wrapper for the target database.
            lock_factory: Opens a lock handle per apply attempt. None
                disables locking (no exclusivity across instances).
            hooks: Lifecycle hook dispatcher (None runs no hooks).
            options: Export/lock switches.
            metrics: Metrics sink (a private registry if omitted).
            failure_tracker: Consecutive fetch failure tracker.
        """
        self._store = store
        self._settings = settings
        self._applier = applier
        self._options = options
        self._lock_factory = lock_factory
        self._hooks = hooks or HookDispatcher()
        self._metrics = metrics or SyncMetrics()
        self._failures = failure_tracker or FailureTracker()
        self._resolver = VersionResolver(store, settings)
        self._markers = CompletionTracker(store, settings.completed_file)
        self._base_context = HookContext.from_settings(settings, __version__)
        self._last_applied: str | None = None

    @property
    def last_applied_version(self) -> str | None:
        return self._last_applied

    @property
    def consecutive_failures(self) -> int:
        return self._failures.count

    @property
    def base_context(self) -> HookContext:
        return self._base_context

    def announce_start(self) -> None:
        """Fire the on-start hook."""
        self._hooks.fire(HookPoint.START, self._base_context)

    # === Fetch failure bookkeeping ===

    def _fetch_failed(self, error: Exception, version: str = "") -> None:
        count = self._failures.record_failure()
        self._metrics.record_fetch_error()
        self._metrics.record_consecutive_failures(count)
        logger.error("Fetch failed (%d consecutive): %s", count, error)

        if self._failures.should_escalate:
            self._hooks.fire(
                HookPoint.FETCH_ERROR,
                self._base_context.evolve(version=version, error=str(error)),
            )

    def _fetch_succeeded(self) -> None:
        self._failures.record_success()
        self._metrics.record_consecutive_failures(0)

    # === Cycle ===

    def run_cycle(self) -> CycleResult:
        """Run one synchronization cycle.

        Returns:
            CycleResult: applied, or skipped with a reason.

        Raises:
            ResolutionError: No usable schema version was found.
            FetchError: Listing or downloading failed.
            LockError: The lock infrastructure failed.
            ApplyError: psqldef failed to apply the schema.
        """
        logger.info("Finding latest schema...")
        self._metrics.record_fetch_attempt()

        try:
            resolved = self._resolver.latest()
        except SchemaSyncError as e:
            self._fetch_failed(e)
            raise
        self._fetch_succeeded()
        version = resolved.version

        if self._last_applied and compare_versions(version, self._last_applied) <= 0:
            logger.info(
                "Latest version %s is not newer than last applied version %s, skipping",
                version,
                self._last_applied,
            )
            return CycleResult.skipped(SkipReason.NOT_NEWER, version)

        if self._markers.enabled:
            try:
                completed = self._markers.exists(resolved.key)
            except MarkerError as e:
                logger.warning("%s", e)
            else:
                if completed:
                    logger.info("Completion marker already exists for %s, skipping", version)
                    self._last_applied = version
                    return CycleResult.skipped(SkipReason.ALREADY_COMPLETED, version)

        try:
            schema = download(self._store, resolved.key)
        except SchemaSyncError as e:
            self._fetch_failed(e, version=version)
            raise
        self._fetch_succeeded()

        if self._lock_factory is None or self._options.skip_lock:
            return self._apply(resolved, schema)
        return self._apply_locked(resolved, schema)

    def _apply_locked(self, resolved: ResolvedVersion, schema: bytes) -> CycleResult:
        with self._lock_factory() as lock:  # type: ignore[misc]
            if lock.try_acquire() is LockStatus.ALREADY_HELD:
                logger.info("Another process is applying schema, skipping %s", resolved.version)
                return CycleResult.skipped(SkipReason.LOCK_HELD, resolved.version)
            try:
                return self._apply(resolved, schema)
            finally:
                try:
                    lock.release()
                except LockError as e:
                    logger.warning("Failed to release lock: %s", e)

    def _apply(self, resolved: ResolvedVersion, schema: bytes) -> CycleResult:
        version = resolved.version

        dry_run = ""
        try:
            dry_run = self._applier.plan(schema)
        except PlanError as e:
            logger.warning("%s", e)

        self._hooks.fire(
            HookPoint.BEFORE_APPLY,
            self._base_context.evolve(version=version, dry_run=dry_run),
        )

        self._metrics.record_apply_attempt()
        logger.info("Applying schema version %s", version)
        try:
            self._applier.apply(schema)
        except ApplyError as e:
            self._metrics.record_apply_error()
            self._hooks.fire(
                HookPoint.APPLY_FAILED,
                self._base_context.evolve(
                    version=version,
                    error=str(e),
                    stdout=e.result.stdout,
                    stderr=e.result.stderr,
                ),
            )
            raise

        self._metrics.record_apply_success(version)
        self._last_applied = version

        if self._options.export_after_apply:
            self._export(resolved)

        if self._markers.enabled:
            try:
                self._markers.mark(resolved.key)
            except MarkerError as e:
                logger.warning("%s", e)

        self._hooks.fire(HookPoint.APPLY_SUCCEEDED, self._base_context.evolve(version=version))
        logger.info("Successfully applied schema version %s", version)
        return CycleResult.applied(version)

    def _export(self, resolved: ResolvedVersion) -> None:
        """Upload the post-apply schema as exported.sql (best effort)."""
        exported_key = build_exported_key(resolved.key)
        try:
            exported = self._applier.export()
        except ExportError as e:
            logger.warning("Could not export schema from database: %s", e)
            return
        try:
            self._store.put(exported_key, exported)
        except StorageError as e:
            logger.warning("Could not upload exported schema to %s: %s", exported_key, e)
            return
        logger.info("Exported schema uploaded to %s", exported_key)

    # === Daemon loop ===

    def run_forever(self, interval: float, stop_event: threading.Event | None = None) -> None:
        """Run cycles until stop_event is set, waiting interval between them.

        Errors end the current cycle only; they are logged and the loop
        waits for the next poll as usual.
        """
        stop = stop_event or threading.Event()
        while not stop.is_set():
            try:
                self.run_cycle()
            except SchemaSyncError as e:
                logger.error("Error in sync: %s", e)
            except Exception:
                logger.exception("Unexpected error in sync cycle")

            logger.info("Waiting %ss before next poll", interval)
            stop.wait(interval)
