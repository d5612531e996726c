"""Schema application through psqldef.

This module provides:
- PsqldefApplier: plan (dry-run), apply and export against a live database
- plan_offline: Diff two schema texts without touching a database

Schemas are written to a temporary file for the duration of each call and
removed on every exit path. All differ invocations are bounded by a
timeout; a differ that overruns is killed.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import tempfile
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO, TYPE_CHECKING, Protocol

from schemasync.sync.types import ApplyError, ApplyResult, ExportError, PlanError

if TYPE_CHECKING:
    from schemasync.core.config import DatabaseConfig

logger = logging.getLogger(__name__)

DEFAULT_DIFFER = "psqldef"
DEFAULT_TIMEOUT = 600.0


class SchemaApplier(Protocol):
    """What the orchestrator needs from a differ against a live database."""

    def plan(self, schema: bytes) -> str: ...

    def apply(self, schema: bytes) -> ApplyResult: ...

    def export(self) -> bytes: ...


@contextmanager
def schema_file(schema: bytes, prefix: str = "schema-") -> Iterator[Path]:
    """Write schema to a temporary .sql file and remove it afterwards."""
    fd, name = tempfile.mkstemp(prefix=prefix, suffix=".sql")
    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(schema)
        yield path
    finally:
        path.unlink(missing_ok=True)


def _pump(source: IO[bytes], sink: IO[str], chunks: list[bytes]) -> None:
    """Copy a child stream to sink while keeping a copy."""
    for line in iter(source.readline, b""):
        chunks.append(line)
        sink.write(line.decode("utf-8", errors="replace"))
        sink.flush()
    source.close()


def run_tee(argv: list[str], timeout: float | None) -> ApplyResult:
    """Run a command, streaming its output to our stdout/stderr and capturing it.

    Raises:
        OSError: If the command cannot be started.
        subprocess.TimeoutExpired: If it runs longer than timeout (the
            child is killed first).
    """
    proc = subprocess.Popen(argv, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    out_chunks: list[bytes] = []
    err_chunks: list[bytes] = []
    assert proc.stdout is not None and proc.stderr is not None
    pumps = [
        threading.Thread(target=_pump, args=(proc.stdout, sys.stdout, out_chunks), daemon=True),
        threading.Thread(target=_pump, args=(proc.stderr, sys.stderr, err_chunks), daemon=True),
    ]
    for pump in pumps:
        pump.start()

    try:
        returncode = proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.wait()
        raise
    finally:
        for pump in pumps:
            pump.join()

    return ApplyResult(
        stdout=b"".join(out_chunks).decode("utf-8", errors="replace"),
        stderr=b"".join(err_chunks).decode("utf-8", errors="replace"),
        returncode=returncode,
    )


class PsqldefApplier:
    """Applies schema files to a PostgreSQL database with psqldef."""

    def __init__(
        self,
        db: DatabaseConfig,
        differ: str = DEFAULT_DIFFER,
        timeout: float | None = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the applier.

        Args:
            db: Target database connection parameters.
            differ: psqldef executable name or path.
            timeout: Seconds allowed per differ invocation.
        """
        self._db = db
        self._differ = differ
        self._timeout = timeout

    def _connection_args(self) -> list[str]:
        db = self._db
        return [
            self._differ,
            "-U", db.user,
            "-h", db.host,
            "-p", db.port,
            "--password", db.password,
            db.name,
        ]  # fmt: skip

    def plan(self, schema: bytes) -> str:
        """Show the DDL an apply would run (``--dry-run``).

        Returns:
            Combined stdout/stderr of the dry run.

        Raises:
            PlanError: If the dry run fails.
        """
        with schema_file(schema) as path:
            argv = [*self._connection_args(), "--dry-run", "--file", str(path)]
            try:
                completed = subprocess.run(
                    argv,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    timeout=self._timeout,
                    check=False,
                )
            except (OSError, subprocess.TimeoutExpired) as e:
                raise PlanError(f"Dry-run failed: {e}") from e

        output = completed.stdout.decode("utf-8", errors="replace")
        if completed.returncode != 0:
            raise PlanError(f"Dry-run failed with exit status {completed.returncode}: {output}")
        return output

    def apply(self, schema: bytes) -> ApplyResult:
        """Apply the schema to the database.

        Output is streamed to this process's stdout/stderr and captured.

        Raises:
            ApplyError: If psqldef cannot run, times out or exits non-zero.
                The captured output is attached as ``result``.
        """
        with schema_file(schema) as path:
            argv = [*self._connection_args(), "--file", str(path)]
            try:
                result = run_tee(argv, self._timeout)
            except subprocess.TimeoutExpired as e:
                raise ApplyError(f"psqldef timed out after {self._timeout}s") from e
            except OSError as e:
                raise ApplyError(f"Failed to run {self._differ}: {e}") from e

        if result.returncode != 0:
            raise ApplyError(f"psqldef exited with status {result.returncode}", result=result)
        return result

    def export(self) -> bytes:
        """Dump the database's current schema (``--export``).

        Raises:
            ExportError: If the export fails.
        """
        argv = [*self._connection_args(), "--export"]
        try:
            completed = subprocess.run(
                argv,
                capture_output=True,
                timeout=self._timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise ExportError(f"psqldef --export failed: {e}") from e

        if completed.returncode != 0:
            stderr = completed.stderr.decode("utf-8", errors="replace").strip()
            raise ExportError(
                f"psqldef --export exited with status {completed.returncode}: {stderr}"
            )
        return completed.stdout


def plan_offline(
    current: bytes,
    desired: bytes,
    differ: str = DEFAULT_DIFFER,
    timeout: float | None = DEFAULT_TIMEOUT,
) -> str:
    """Compute the DDL turning current into desired, without a database.

    Runs ``psqldef current.sql < desired.sql``.

    Returns:
        The DDL psqldef printed.

    Raises:
        PlanError: If psqldef fails.
    """
    with schema_file(current, prefix="current-") as path:
        try:
            completed = subprocess.run(
                [differ, str(path)],
                input=desired,
                capture_output=True,
                timeout=timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise PlanError(f"Offline plan failed: {e}") from e

    if completed.returncode != 0:
        stderr = completed.stderr.decode("utf-8", errors="replace").strip()
        raise PlanError(f"Offline plan exited with status {completed.returncode}: {stderr}")
    return completed.stdout.decode("utf-8", errors="replace")
