"""Shared types and dataclasses for schema synchronization.

This module provides:
- SchemaSyncError and subclasses: the error taxonomy
- ResolvedVersion: An artifact key paired with its version token
- ApplyResult: Captured differ output
- CycleResult: Outcome of one synchronization cycle

Hard errors (ResolutionError, FetchError, LockError, ApplyError) end a
cycle and reach the caller. Soft errors (MarkerError, ExportError,
HookError, PlanError) are logged where they happen and never end a cycle.
"""

from __future__ import annotations

from dataclasses import dataclass

from schemasync.core.types import SkipReason, SyncOutcome


@dataclass
class ResolvedVersion:
    """A schema artifact chosen by the resolver."""

    key: str
    version: str


@dataclass
class ApplyResult:
    """Output captured from a differ invocation."""

    stdout: str = ""
    stderr: str = ""
    returncode: int = 0


@dataclass
class CycleResult:
    """Result of one synchronization cycle that did not fail."""

    outcome: SyncOutcome
    version: str | None = None
    reason: SkipReason | None = None

    @classmethod
    def applied(cls, version: str) -> CycleResult:
        return cls(outcome=SyncOutcome.APPLIED, version=version)

    @classmethod
    def skipped(cls, reason: SkipReason, version: str | None = None) -> CycleResult:
        return cls(outcome=SyncOutcome.SKIPPED, version=version, reason=reason)


class SchemaSyncError(Exception):
    """Base exception for schema sync errors."""


class ResolutionError(SchemaSyncError):
    """No schema version could be resolved."""


class NoCandidatesError(ResolutionError):
    """No key matched the schema file name."""

    def __init__(self, prefix: str, schema_file: str, completed: bool = False) -> None:
        self.prefix = prefix
        self.schema_file = schema_file
        kind = "completed schema files" if completed else "schema files"
        super().__init__(f"No {kind} found with prefix {prefix!r} and file name {schema_file!r}")


class NoValidVersionsError(ResolutionError):
    """Candidates were found but none of their version tokens parse."""

    def __init__(self, tokens: list[str]) -> None:
        self.tokens = tokens
        super().__init__(f"No valid versions found among {tokens}")


class FetchError(SchemaSyncError):
    """Listing or downloading from the object store failed."""


class LockError(SchemaSyncError):
    """The advisory lock could not be acquired or released.

    Another holder is not an error; this signals broken lock infrastructure
    (connection refused, query failure, releasing a lock not held).
    """


class ApplyError(SchemaSyncError):
    """The differ failed to apply the schema."""

    def __init__(self, message: str, result: ApplyResult | None = None) -> None:
        super().__init__(message)
        self.result = result or ApplyResult()


class PlanError(SchemaSyncError):
    """The differ failed to produce a plan."""


class ExportError(SchemaSyncError):
    """Exporting the post-apply schema failed."""


class MarkerError(SchemaSyncError):
    """A completion marker could not be checked or written."""


class HookError(SchemaSyncError):
    """A hook command failed."""

    def __init__(self, message: str, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode
