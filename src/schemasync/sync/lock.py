"""Database-scoped exclusive lock around schema application.

Uses a PostgreSQL session-level advisory lock held on a dedicated,
non-pooled connection. The lock belongs to that connection: it is released
explicitly by release(), or by the server as soon as the connection ends,
including when the process crashes. There is no lease to renew.

Every instance uses the same lock id, so all syncs against one database
serialize regardless of path prefix or version.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from schemasync.core.types import LockStatus
from schemasync.sync.types import LockError

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy import Connection, Engine

    from schemasync.core.config import DatabaseConfig

logger = logging.getLogger(__name__)

# "DBSCHEMA" in hexadecimal
ADVISORY_LOCK_ID = 0x4442534348454D41


class ApplyLock(Protocol):
    """Lock handle used by the orchestrator for one apply attempt."""

    def try_acquire(self) -> LockStatus: ...

    def release(self) -> None: ...

    def close(self) -> None: ...

    def __enter__(self) -> ApplyLock: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None: ...


class AdvisoryLock:
    """Non-blocking PostgreSQL advisory lock on its own connection.

    Usage:
        with AdvisoryLock.for_database(db) as lock:
            if lock.try_acquire() is LockStatus.ACQUIRED:
                ...
                lock.release()
    """

    def __init__(self, engine: Engine, lock_id: int = ADVISORY_LOCK_ID) -> None:
        """Open the lock connection.

        Args:
            engine: Engine for the target database. Should not pool
                connections, or close() would not end the session.
            lock_id: Advisory lock key.

        Raises:
            LockError: If the connection cannot be established.
        """
        self._engine = engine
        self._lock_id = lock_id
        self._held = False
        try:
            self._conn: Connection | None = engine.connect().execution_options(
                isolation_level="AUTOCOMMIT"
            )
        except SQLAlchemyError as e:
            raise LockError(f"Failed to connect to database for locking: {e}") from e

    @classmethod
    def for_database(cls, db: DatabaseConfig, lock_id: int = ADVISORY_LOCK_ID) -> AdvisoryLock:
        """Create a lock on a fresh, unpooled engine for db."""
        engine = create_engine(
            db.url,
            poolclass=NullPool,
            connect_args={"connect_timeout": db.connect_timeout},
        )
        return cls(engine, lock_id=lock_id)

    @property
    def held(self) -> bool:
        return self._held

    def _scalar(self, sql: str) -> bool:
        if self._conn is None:
            raise LockError("Lock connection is closed")
        result = self._conn.execute(text(sql), {"lock_id": self._lock_id}).scalar()
        return bool(result)

    def try_acquire(self) -> LockStatus:
        """Try to take the lock without waiting.

        Returns:
            ACQUIRED, or ALREADY_HELD if another session holds it.

        Raises:
            LockError: If the lock query fails.
        """
        try:
            acquired = self._scalar("SELECT pg_try_advisory_lock(:lock_id)")
        except SQLAlchemyError as e:
            raise LockError(f"Failed to acquire advisory lock: {e}") from e

        if not acquired:
            return LockStatus.ALREADY_HELD
        self._held = True
        logger.debug("Acquired advisory lock %#x", self._lock_id)
        return LockStatus.ACQUIRED

    def release(self) -> None:
        """Release the lock.

        Raises:
            LockError: If the query fails or this session did not hold the lock.
        """
        try:
            released = self._scalar("SELECT pg_advisory_unlock(:lock_id)")
        except SQLAlchemyError as e:
            raise LockError(f"Failed to release advisory lock: {e}") from e

        self._held = False
        if not released:
            raise LockError("Advisory lock was not held")
        logger.debug("Released advisory lock %#x", self._lock_id)

    def close(self) -> None:
        """Close the connection; the server drops any lock still held."""
        if self._conn is not None:
            try:
                self._conn.close()
            finally:
                self._conn = None
                self._held = False
                self._engine.dispose()

    def __enter__(self) -> AdvisoryLock:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
