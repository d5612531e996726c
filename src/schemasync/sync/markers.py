"""Completion markers and sibling-key helpers.

A version counts as applied once an empty object named after the
completed file exists next to its schema file:

    schemas/v3/schema.sql
    schemas/v3/completed       <- marker
    schemas/v3/exported.sql    <- optional post-apply export
"""

from __future__ import annotations

import logging
import posixpath
from typing import TYPE_CHECKING

from schemasync.core.config import EXPORTED_FILE
from schemasync.storage import StorageError
from schemasync.sync.types import MarkerError

if TYPE_CHECKING:
    from schemasync.storage import ObjectStore

logger = logging.getLogger(__name__)


def sibling_key(schema_key: str, file_name: str) -> str:
    """Build the key of file_name in the same directory as schema_key."""
    return posixpath.join(posixpath.dirname(schema_key), file_name)


def build_marker_key(schema_key: str, completed_file: str) -> str:
    """Build the completion marker key for a schema key."""
    return sibling_key(schema_key, completed_file)


def build_exported_key(schema_key: str) -> str:
    """Build the exported snapshot key for a schema key."""
    return sibling_key(schema_key, EXPORTED_FILE)


class CompletionTracker:
    """Checks for and creates per-version completion markers."""

    def __init__(self, store: ObjectStore, completed_file: str) -> None:
        self._store = store
        self._completed_file = completed_file

    @property
    def enabled(self) -> bool:
        """False when the completed file name is empty."""
        return bool(self._completed_file)

    def marker_key(self, schema_key: str) -> str:
        return build_marker_key(schema_key, self._completed_file)

    def exists(self, schema_key: str) -> bool:
        """Check whether the version holding schema_key is marked completed.

        Raises:
            MarkerError: If the store cannot tell (absence is not an error).
        """
        key = self.marker_key(schema_key)
        try:
            return self._store.exists(key)
        except StorageError as e:
            raise MarkerError(f"Could not check completion marker {key}: {e}") from e

    def mark(self, schema_key: str) -> str:
        """Write an empty completion marker. Re-marking is harmless.

        Returns:
            The marker key.

        Raises:
            MarkerError: If the marker could not be written.
        """
        key = self.marker_key(schema_key)
        try:
            self._store.put(key, b"")
        except StorageError as e:
            raise MarkerError(f"Could not create completion marker {key}: {e}") from e
        logger.debug("Created completion marker %s", key)
        return key
