"""Shared fixtures for schemasync tests."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from schemasync.core.config import StoreSettings, SyncOptions
from schemasync.core.types import HookPoint, LockStatus
from schemasync.server.metrics import SyncMetrics
from schemasync.storage import LocalFSStore
from schemasync.sync.hooks import HookContext, HookDispatcher
from schemasync.sync.types import ApplyError, ApplyResult, ExportError, PlanError

PutSchema = Callable[..., str]


class FakeApplier:
    """Records differ calls instead of running psqldef."""

    def __init__(self) -> None:
        self.applied: list[bytes] = []
        self.planned: list[bytes] = []
        self.exports = 0
        self.plan_output = "CREATE TABLE users (id integer);\n"
        self.plan_error: str | None = None
        self.apply_error: ApplyError | None = None
        self.export_output = b"-- exported\n"
        self.export_error: str | None = None

    def plan(self, schema: bytes) -> str:
        self.planned.append(schema)
        if self.plan_error:
            raise PlanError(self.plan_error)
        return self.plan_output

    def apply(self, schema: bytes) -> ApplyResult:
        self.applied.append(schema)
        if self.apply_error:
            raise self.apply_error
        return ApplyResult(stdout="Apply done\n")

    def export(self) -> bytes:
        self.exports += 1
        if self.export_error:
            raise ExportError(self.export_error)
        return self.export_output


class FakeLock:
    """In-memory stand-in for an advisory lock handle."""

    def __init__(self, status: LockStatus = LockStatus.ACQUIRED) -> None:
        self.status = status
        self.acquire_calls = 0
        self.released = False
        self.closed = False

    def try_acquire(self) -> LockStatus:
        self.acquire_calls += 1
        return self.status

    def release(self) -> None:
        self.released = True

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> FakeLock:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class LockFactory:
    """Zero-argument lock factory handing out FakeLock instances."""

    def __init__(self) -> None:
        self.status = LockStatus.ACQUIRED
        self.created: list[FakeLock] = []

    def __call__(self) -> FakeLock:
        lock = FakeLock(self.status)
        self.created.append(lock)
        return lock


class RecordingHooks(HookDispatcher):
    """Dispatcher that records every hook point with its context."""

    def __init__(self) -> None:
        super().__init__()
        self.fired: list[tuple[HookPoint, HookContext]] = []

    def fire(self, point: HookPoint, context: HookContext) -> bool:
        self.fired.append((point, context))
        return True

    def points(self) -> list[HookPoint]:
        return [point for point, _ in self.fired]

    def context_for(self, point: HookPoint) -> HookContext:
        return next(ctx for p, ctx in reversed(self.fired) if p is point)


@pytest.fixture
def store_root(tmp_path: Path) -> Path:
    """Directory backing the local object store."""
    return tmp_path / "bucket"


@pytest.fixture
def store(store_root: Path) -> LocalFSStore:
    """Create a local object store for testing."""
    return LocalFSStore(store_root)


@pytest.fixture
def settings(store_root: Path) -> StoreSettings:
    """Store settings pointing at the local test store."""
    return StoreSettings(
        bucket="test-bucket",
        path_prefix="schemas/",
        local_path=str(store_root),
    )


@pytest.fixture
def put_schema(store: LocalFSStore) -> PutSchema:
    """Add a schema version (optionally completed) to the test store."""

    def _put(
        version: str,
        body: bytes = b"CREATE TABLE users (id integer);\n",
        completed: bool = False,
        prefix: str = "schemas/",
    ) -> str:
        key = f"{prefix}{version}/schema.sql"
        store.put(key, body)
        if completed:
            store.put(f"{prefix}{version}/completed", b"")
        return key

    return _put


@pytest.fixture
def applier() -> FakeApplier:
    return FakeApplier()


@pytest.fixture
def lock_factory() -> LockFactory:
    return LockFactory()


@pytest.fixture
def hooks() -> RecordingHooks:
    return RecordingHooks()


@pytest.fixture
def metrics() -> SyncMetrics:
    """Metrics on a private registry."""
    return SyncMetrics()


@pytest.fixture
def options() -> SyncOptions:
    return SyncOptions()


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Drop handlers installed by setup_logging() during a test."""
    yield
    package_logger = logging.getLogger("schemasync")
    for handler in package_logger.handlers[:]:
        if getattr(handler, "_schemasync_handler", False):
            package_logger.removeHandler(handler)
            handler.close()
    package_logger.setLevel(logging.NOTSET)
