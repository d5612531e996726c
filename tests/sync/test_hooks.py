"""Tests for lifecycle hooks."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from schemasync.core.config import HookCommands, StoreSettings
from schemasync.core.types import HookPoint
from schemasync.sync.hooks import HookContext, HookDispatcher, ShellHook
from schemasync.sync.types import HookError


def _read_env(path: Path) -> dict[str, str]:
    env: dict[str, str] = {}
    for line in path.read_text().splitlines():
        name, sep, value = line.partition("=")
        if sep:
            env[name] = value
    return env


class TestHookContext:
    """Tests for HookContext."""

    def test_to_env_only_non_empty(self) -> None:
        """Empty fields should not be exported."""
        context = HookContext(bucket="b", version="v3")
        assert context.to_env() == {
            "DB_SCHEMA_SYNC_S3_BUCKET": "b",
            "DB_SCHEMA_SYNC_VERSION": "v3",
        }

    def test_all_variables(self) -> None:
        """Every field should map to its DB_SCHEMA_SYNC_ variable."""
        context = HookContext(
            bucket="b",
            path_prefix="schemas/",
            schema_file="schema.sql",
            completed_file="completed",
            app_version="0.1.0",
            version="v1",
            error="boom",
            stdout="out",
            stderr="err",
            dry_run="ALTER TABLE",
        )
        assert context.to_env() == {
            "DB_SCHEMA_SYNC_S3_BUCKET": "b",
            "DB_SCHEMA_SYNC_PATH_PREFIX": "schemas/",
            "DB_SCHEMA_SYNC_SCHEMA_FILE": "schema.sql",
            "DB_SCHEMA_SYNC_COMPLETED_FILE": "completed",
            "DB_SCHEMA_SYNC_APP_VERSION": "0.1.0",
            "DB_SCHEMA_SYNC_VERSION": "v1",
            "DB_SCHEMA_SYNC_ERROR": "boom",
            "DB_SCHEMA_SYNC_STDOUT": "out",
            "DB_SCHEMA_SYNC_STDERR": "err",
            "DB_SCHEMA_SYNC_DRY_RUN": "ALTER TABLE",
        }

    def test_environment_preserves_base(self) -> None:
        """The existing environment should be kept."""
        env = HookContext(version="v2").environment({"PATH": "/bin", "HOME": "/root"})
        assert env == {"PATH": "/bin", "HOME": "/root", "DB_SCHEMA_SYNC_VERSION": "v2"}

    def test_from_settings_and_evolve(self) -> None:
        """evolve() should copy the base context with changes."""
        settings = StoreSettings(bucket="b", path_prefix="schemas")
        base = HookContext.from_settings(settings, "1.2.3")
        derived = base.evolve(version="v5", error="x")

        assert base.version == ""
        assert derived.bucket == "b"
        assert derived.path_prefix == "schemas/"
        assert derived.schema_file == "schema.sql"
        assert derived.app_version == "1.2.3"
        assert derived.version == "v5"
        assert derived.error == "x"


class TestShellHook:
    """Tests for ShellHook."""

    def test_exports_context(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """The command should see the context and the inherited environment."""
        out = tmp_path / "env.txt"
        monkeypatch.setenv("EXISTING_VAR", "kept")

        ShellHook(f"env > '{out}'")(HookContext(version="v7", error="multi word error"))

        env = _read_env(out)
        assert env["DB_SCHEMA_SYNC_VERSION"] == "v7"
        assert env["DB_SCHEMA_SYNC_ERROR"] == "multi word error"
        assert env["EXISTING_VAR"] == "kept"
        assert "DB_SCHEMA_SYNC_STDOUT" not in env

    def test_non_zero_exit_raises(self) -> None:
        """A failing command should raise HookError with the exit status."""
        with pytest.raises(HookError) as exc_info:
            ShellHook("exit 3")(HookContext())
        assert exc_info.value.returncode == 3

    def test_timeout_raises(self) -> None:
        with pytest.raises(HookError, match="timed out"):
            ShellHook("sleep 5", timeout=0.2)(HookContext())


class TestHookDispatcher:
    """Tests for HookDispatcher."""

    def test_no_hook_registered(self) -> None:
        """Firing an unregistered point should do nothing."""
        assert HookDispatcher().fire(HookPoint.START, HookContext()) is False

    def test_runs_registered_hook(self) -> None:
        seen: list[HookContext] = []
        dispatcher = HookDispatcher({HookPoint.BEFORE_APPLY: seen.append})
        context = HookContext(version="v1")

        assert dispatcher.fire(HookPoint.BEFORE_APPLY, context) is True
        assert seen == [context]
        assert dispatcher.has_hook(HookPoint.BEFORE_APPLY)
        assert not dispatcher.has_hook(HookPoint.APPLY_FAILED)

    def test_hook_error_is_contained(self, caplog: pytest.LogCaptureFixture) -> None:
        """A failing hook should be logged, not raised."""

        def failing(context: HookContext) -> None:
            raise HookError("exit status 1")

        dispatcher = HookDispatcher({HookPoint.APPLY_SUCCEEDED: failing})
        with caplog.at_level(logging.ERROR, logger="schemasync"):
            assert dispatcher.fire(HookPoint.APPLY_SUCCEEDED, HookContext()) is False
        assert "on-apply-succeeded" in caplog.text

    def test_unexpected_error_is_contained(self) -> None:
        def broken(context: HookContext) -> None:
            raise RuntimeError("bug")

        dispatcher = HookDispatcher({HookPoint.START: broken})
        assert dispatcher.fire(HookPoint.START, HookContext()) is False

    def test_from_commands(self, tmp_path: Path) -> None:
        """Configured commands should become shell hooks."""
        marker = tmp_path / "started"
        dispatcher = HookDispatcher.from_commands(
            HookCommands(on_start=f"touch '{marker}'"), timeout=10
        )

        assert dispatcher.has_hook(HookPoint.START)
        assert not dispatcher.has_hook(HookPoint.FETCH_ERROR)
        assert dispatcher.fire(HookPoint.START, HookContext()) is True
        assert marker.exists()
