"""Lifecycle hooks.

This module provides:
- HookContext: Immutable snapshot of what a hook gets to know
- ShellHook: Runs an operator command via ``sh -c`` with the context
  exported as DB_SCHEMA_SYNC_* environment variables
- HookDispatcher: Maps lifecycle points to hooks and contains their failures

A hook is any callable taking a HookContext. It signals failure by raising
HookError; the dispatcher logs it and carries on, so a broken hook never
fails a sync cycle.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from schemasync.sync.types import HookError

if TYPE_CHECKING:
    from schemasync.core.config import HookCommands, StoreSettings
    from schemasync.core.types import HookPoint

logger = logging.getLogger(__name__)

ENV_PREFIX = "DB_SCHEMA_SYNC_"

# HookContext field -> environment variable suffix
_ENV_FIELDS = (
    ("bucket", "S3_BUCKET"),
    ("path_prefix", "PATH_PREFIX"),
    ("schema_file", "SCHEMA_FILE"),
    ("version", "VERSION"),
    ("error", "ERROR"),
    ("completed_file", "COMPLETED_FILE"),
    ("app_version", "APP_VERSION"),
    ("stdout", "STDOUT"),
    ("stderr", "STDERR"),
    ("dry_run", "DRY_RUN"),
)


@dataclass(frozen=True)
class HookContext:
    """Information passed to a hook. Empty fields are not exported."""

    bucket: str = ""
    path_prefix: str = ""
    schema_file: str = ""
    completed_file: str = ""
    app_version: str = ""
    version: str = ""
    error: str = ""
    stdout: str = ""
    stderr: str = ""
    dry_run: str = ""

    @classmethod
    def from_settings(cls, settings: StoreSettings, app_version: str) -> HookContext:
        """Base context carrying the store settings."""
        return cls(
            bucket=settings.bucket,
            path_prefix=settings.path_prefix,
            schema_file=settings.schema_file,
            completed_file=settings.completed_file,
            app_version=app_version,
        )

    def evolve(self, **changes: str) -> HookContext:
        """Return a copy with some fields replaced."""
        return replace(self, **changes)

    def to_env(self) -> dict[str, str]:
        """Environment variables for the non-empty fields."""
        env: dict[str, str] = {}
        for attr, suffix in _ENV_FIELDS:
            value = getattr(self, attr)
            if value:
                env[ENV_PREFIX + suffix] = value
        return env

    def environment(self, base: Mapping[str, str] | None = None) -> dict[str, str]:
        """The process environment extended with this context."""
        env = dict(os.environ if base is None else base)
        env.update(self.to_env())
        return env


Hook = Callable[[HookContext], None]


class ShellHook:
    """A hook that runs a shell command."""

    def __init__(self, command: str, timeout: float | None = None) -> None:
        """Initialize the hook.

        Args:
            command: Command line passed to ``sh -c``.
            timeout: Seconds before the command is killed (None = no limit).
        """
        self.command = command
        self.timeout = timeout

    def __call__(self, context: HookContext) -> None:
        """Run the command, inheriting stdout/stderr.

        Raises:
            HookError: If the command cannot start, times out or exits non-zero.
        """
        try:
            completed = subprocess.run(
                ["sh", "-c", self.command],
                env=context.environment(),
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise HookError(f"Command timed out after {self.timeout}s: {self.command}") from e
        except OSError as e:
            raise HookError(f"Failed to run command {self.command!r}: {e}") from e

        if completed.returncode != 0:
            raise HookError(
                f"Command exited with status {completed.returncode}: {self.command}",
                returncode=completed.returncode,
            )

    def __repr__(self) -> str:
        return f"ShellHook({self.command!r})"


class HookDispatcher:
    """Runs the hook registered for a lifecycle point, if any."""

    def __init__(self, hooks: Mapping[HookPoint, Hook] | None = None) -> None:
        self._hooks: dict[HookPoint, Hook] = dict(hooks or {})

    @classmethod
    def from_commands(cls, commands: HookCommands, timeout: float | None = None) -> HookDispatcher:
        """Build a dispatcher running shell commands."""
        return cls(
            {point: ShellHook(cmd, timeout=timeout) for point, cmd in commands.as_mapping().items()}
        )

    def has_hook(self, point: HookPoint) -> bool:
        return point in self._hooks

    def fire(self, point: HookPoint, context: HookContext) -> bool:
        """Run the hook for point.

        Returns:
            True if a hook ran and succeeded, False if none is registered
            or it failed (failures are logged, never raised).
        """
        hook = self._hooks.get(point)
        if hook is None:
            return False

        logger.info("Running hook %s", point.value)
        try:
            hook(context)
        except HookError as e:
            logger.error("Hook %s failed: %s", point.value, e)
            return False
        except Exception:
            logger.exception("Unexpected error in hook %s", point.value)
            return False
        return True
