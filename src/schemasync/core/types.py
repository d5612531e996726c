"""Shared enums for schemasync.

This module defines types used by the sync engine, the CLI and the
metrics exporter.
"""

from __future__ import annotations

from enum import Enum


class SyncOutcome(str, Enum):
    """Terminal outcome of one synchronization cycle.

    Hard errors are raised rather than returned, so only the two
    non-error outcomes appear here.
    """

    APPLIED = "applied"
    SKIPPED = "skipped"


class SkipReason(str, Enum):
    """Why a cycle ended without applying anything."""

    NOT_NEWER = "not_newer"
    ALREADY_COMPLETED = "already_completed"
    LOCK_HELD = "lock_held"


class HookPoint(str, Enum):
    """Lifecycle points at which operator hooks can run."""

    START = "on-start"
    FETCH_ERROR = "on-s3-fetch-error"
    BEFORE_APPLY = "on-before-apply"
    APPLY_FAILED = "on-apply-failed"
    APPLY_SUCCEEDED = "on-apply-succeeded"


class LockStatus(str, Enum):
    """Result of a non-blocking lock attempt."""

    ACQUIRED = "acquired"
    ALREADY_HELD = "already_held"
