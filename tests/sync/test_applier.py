"""Tests for the psqldef applier, using a fake psqldef script."""

from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest

from schemasync.core.config import DatabaseConfig
from schemasync.sync.applier import PsqldefApplier, plan_offline, run_tee, schema_file
from schemasync.sync.types import ApplyError, ExportError, PlanError

FAKE_PSQLDEF = """#!/bin/sh
# Records its arguments and mimics psqldef output.
echo "$@" >> "{workdir}/args.log"
if [ -n "$FAKE_PSQLDEF_FAIL" ]; then
    echo "partial output"
    echo "syntax error at or near \\"TABEL\\"" >&2
    exit 1
fi
file=""
prev=""
for arg in "$@"; do
    if [ "$prev" = "--file" ]; then file="$arg"; fi
    prev="$arg"
done
case " $* " in
    *" --dry-run "*)
        echo "-- dry run --"
        echo "ALTER TABLE users ADD COLUMN email text;"
        ;;
    *" --export "*)
        echo "CREATE TABLE users (id integer, email text);"
        ;;
    *" --file "*)
        cp "$file" "{workdir}/applied.sql"
        echo "-- Apply --"
        echo "notice: applied" >&2
        ;;
    *)
        echo "-- current --"
        cat "$1"
        echo "-- desired --"
        cat
        ;;
esac
"""


@pytest.fixture
def fake_psqldef(tmp_path: Path) -> Path:
    """Install a fake psqldef executable in tmp_path."""
    script = tmp_path / "psqldef"
    script.write_text(FAKE_PSQLDEF.format(workdir=tmp_path))
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


@pytest.fixture
def db() -> DatabaseConfig:
    return DatabaseConfig(host="db.local", port="5432", user="app", password="pw", name="main")


@pytest.fixture
def applier(db: DatabaseConfig, fake_psqldef: Path) -> PsqldefApplier:
    return PsqldefApplier(db, differ=str(fake_psqldef), timeout=10)


def _last_args(tmp_path: Path) -> str:
    return (tmp_path / "args.log").read_text().splitlines()[-1]


class TestSchemaFile:
    """Tests for the schema_file() context manager."""

    def test_written_and_removed(self) -> None:
        with schema_file(b"CREATE TABLE t ();") as path:
            assert path.read_bytes() == b"CREATE TABLE t ();"
            assert path.suffix == ".sql"
        assert not path.exists()

    def test_removed_on_error(self) -> None:
        with pytest.raises(RuntimeError):
            with schema_file(b"x") as path:
                raise RuntimeError("boom")
        assert not path.exists()


class TestRunTee:
    """Tests for run_tee()."""

    def test_captures_and_streams(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Output should be both captured and forwarded."""
        result = run_tee(["sh", "-c", "echo out; echo err >&2; exit 4"], timeout=10)

        assert result.stdout == "out\n"
        assert result.stderr == "err\n"
        assert result.returncode == 4
        captured = capsys.readouterr()
        assert "out" in captured.out
        assert "err" in captured.err


class TestPsqldefApplier:
    """Tests for PsqldefApplier."""

    def test_plan(self, applier: PsqldefApplier, tmp_path: Path) -> None:
        """plan() should run a dry run and return its output."""
        output = applier.plan(b"CREATE TABLE users (id integer, email text);")

        assert "ALTER TABLE users ADD COLUMN email text;" in output
        args = _last_args(tmp_path)
        assert args.startswith("-U app -h db.local -p 5432 --password pw main --dry-run --file ")

    def test_apply(self, applier: PsqldefApplier, tmp_path: Path) -> None:
        """apply() should pass the schema through a file and capture output."""
        result = applier.apply(b"CREATE TABLE users (id integer);")

        assert result.returncode == 0
        assert "-- Apply --" in result.stdout
        assert "notice: applied" in result.stderr
        assert (tmp_path / "applied.sql").read_bytes() == b"CREATE TABLE users (id integer);"
        assert " --dry-run " not in _last_args(tmp_path)

    def test_apply_failure_carries_output(
        self, applier: PsqldefApplier, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A non-zero exit should raise ApplyError with the captured output."""
        monkeypatch.setenv("FAKE_PSQLDEF_FAIL", "1")

        with pytest.raises(ApplyError) as exc_info:
            applier.apply(b"CREATE TABEL broken;")

        assert "syntax error" in exc_info.value.result.stderr
        assert "partial output" in exc_info.value.result.stdout
        assert exc_info.value.result.returncode == 1

    def test_plan_failure(
        self, applier: PsqldefApplier, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("FAKE_PSQLDEF_FAIL", "1")
        with pytest.raises(PlanError, match="syntax error"):
            applier.plan(b"x")

    def test_export(self, applier: PsqldefApplier, tmp_path: Path) -> None:
        """export() should return the dumped schema."""
        assert applier.export() == b"CREATE TABLE users (id integer, email text);\n"
        assert _last_args(tmp_path).endswith("main --export")

    def test_export_failure(
        self, applier: PsqldefApplier, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("FAKE_PSQLDEF_FAIL", "1")
        with pytest.raises(ExportError):
            applier.export()

    def test_missing_executable(self, db: DatabaseConfig, tmp_path: Path) -> None:
        """A differ that cannot start should raise ApplyError."""
        applier = PsqldefApplier(db, differ=str(tmp_path / "missing-psqldef"))
        with pytest.raises(ApplyError, match="Failed to run"):
            applier.apply(b"x")

    def test_timeout_kills_differ(self, db: DatabaseConfig, tmp_path: Path) -> None:
        """An overrunning differ should be killed and reported."""
        slow = tmp_path / "slow-psqldef"
        slow.write_text("#!/bin/sh\nexec sleep 5\n")
        slow.chmod(0o755)

        applier = PsqldefApplier(db, differ=str(slow), timeout=0.3)
        with pytest.raises(ApplyError, match="timed out"):
            applier.apply(b"x")


class TestPlanOffline:
    """Tests for plan_offline()."""

    def test_current_file_and_desired_stdin(self, fake_psqldef: Path) -> None:
        """The current schema is a file argument, the desired one is stdin."""
        output = plan_offline(b"CURRENT\n", b"DESIRED\n", differ=str(fake_psqldef))
        assert output == "-- current --\nCURRENT\n-- desired --\nDESIRED\n"

    def test_failure(self, fake_psqldef: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FAKE_PSQLDEF_FAIL", "1")
        with pytest.raises(PlanError, match="syntax error"):
            plan_offline(b"a", b"b", differ=str(fake_psqldef))

    def test_no_database_arguments(self, fake_psqldef: Path, tmp_path: Path) -> None:
        """Offline planning should only pass the current schema path."""
        plan_offline(b"a", b"b", differ=str(fake_psqldef))
        args = _last_args(tmp_path).split()
        assert len(args) == 1
        assert not os.path.exists(args[0])
