"""Version resolution over object store listings.

This module provides:
- find_latest_version: Pick the newest schema among listed keys
- find_latest_completed_version: Same, restricted to versions with a marker
- VersionResolver: Lists the store and applies the functions above
- fetch_latest_completed / load_plan_baseline: Helpers for the
  fetch-completed and plan commands

A key is a candidate when its basename equals the schema file name; its
version token is the name of its parent directory. Tokens that don't parse
as versions are dropped with a warning; resolution only fails if nothing
is left.
"""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Iterable
from typing import TYPE_CHECKING

from schemasync.core.versions import InvalidVersionError, find_max_version
from schemasync.storage import ObjectNotFoundError, StorageError
from schemasync.sync.markers import build_exported_key, build_marker_key
from schemasync.sync.types import (
    FetchError,
    NoCandidatesError,
    NoValidVersionsError,
    ResolvedVersion,
)

if TYPE_CHECKING:
    from schemasync.core.config import StoreSettings
    from schemasync.storage import ObjectStore

logger = logging.getLogger(__name__)


def version_token(key: str) -> str | None:
    """Return the version directory name of a key, or None at the root."""
    token = posixpath.basename(posixpath.dirname(key))
    if token in ("", ".", "/"):
        return None
    return token


def _collect_candidates(keys: Iterable[str], schema_file: str) -> dict[str, str]:
    """Map version token -> schema key for keys named schema_file."""
    candidates: dict[str, str] = {}
    for key in keys:
        if posixpath.basename(key) != schema_file:
            continue
        token = version_token(key)
        if token is None:
            continue
        candidates.setdefault(token, key)
    return candidates


def _pick_latest(candidates: dict[str, str]) -> ResolvedVersion:
    tokens = list(candidates)
    try:
        latest = find_max_version(tokens)
    except InvalidVersionError as e:
        raise NoValidVersionsError(tokens) from e
    return ResolvedVersion(key=candidates[latest], version=latest)


def find_latest_version(keys: Iterable[str], prefix: str, schema_file: str) -> ResolvedVersion:
    """Find the newest version holding schema_file.

    Args:
        keys: Object keys, typically a listing under prefix.
        prefix: The listing prefix (used in error messages).
        schema_file: Schema file name to look for.

    Raises:
        NoCandidatesError: If no key is named schema_file.
        NoValidVersionsError: If no candidate version parses.
    """
    candidates = _collect_candidates(keys, schema_file)
    if not candidates:
        raise NoCandidatesError(prefix, schema_file)
    return _pick_latest(candidates)


def find_latest_completed_version(
    keys: Iterable[str],
    prefix: str,
    schema_file: str,
    completed_file: str,
) -> ResolvedVersion:
    """Find the newest version holding both schema_file and its marker.

    Raises:
        NoCandidatesError: If no version has both files.
        NoValidVersionsError: If no completed version parses.
    """
    key_set = set(keys)
    candidates = {
        token: key
        for token, key in _collect_candidates(key_set, schema_file).items()
        if build_marker_key(key, completed_file) in key_set
    }
    if not candidates:
        raise NoCandidatesError(prefix, schema_file, completed=True)
    return _pick_latest(candidates)


class VersionResolver:
    """Resolves the latest schema versions from an object store."""

    def __init__(self, store: ObjectStore, settings: StoreSettings) -> None:
        self._store = store
        self._settings = settings

    def _list(self) -> list[str]:
        try:
            return self._store.list_keys(self._settings.path_prefix)
        except StorageError as e:
            raise FetchError(f"Failed to list schemas: {e}") from e

    def latest(self) -> ResolvedVersion:
        """Resolve the newest schema version.

        Raises:
            FetchError: If the listing fails.
            ResolutionError: If nothing usable was listed.
        """
        return find_latest_version(
            self._list(), self._settings.path_prefix, self._settings.schema_file
        )

    def latest_completed(self) -> ResolvedVersion:
        """Resolve the newest schema version that has a completion marker.

        Raises:
            FetchError: If the listing fails.
            ResolutionError: If no completed version exists.
        """
        return find_latest_completed_version(
            self._list(),
            self._settings.path_prefix,
            self._settings.schema_file,
            self._settings.completed_file,
        )


def download(store: ObjectStore, key: str) -> bytes:
    """Download an object, wrapping storage failures as FetchError."""
    try:
        return store.get(key)
    except StorageError as e:
        raise FetchError(f"Failed to download {key}: {e}") from e


def fetch_latest_completed(
    store: ObjectStore, settings: StoreSettings
) -> tuple[ResolvedVersion, bytes]:
    """Resolve and download the newest completed schema."""
    resolved = VersionResolver(store, settings).latest_completed()
    logger.info("Found latest completed schema %s (%s)", resolved.version, resolved.key)
    return resolved, download(store, resolved.key)


def load_plan_baseline(
    store: ObjectStore, settings: StoreSettings
) -> tuple[ResolvedVersion, bytes, str]:
    """Load the schema that best describes the database's current state.

    Prefers the exported snapshot of the newest completed version and
    falls back to that version's schema file.

    Returns:
        Tuple of (resolved version, schema bytes, key actually read).
    """
    resolved = VersionResolver(store, settings).latest_completed()
    exported_key = build_exported_key(resolved.key)
    try:
        body = store.get(exported_key)
    except ObjectNotFoundError:
        logger.info(
            "exported.sql not found, using %s as current state (version %s)",
            settings.schema_file,
            resolved.version,
        )
        return resolved, download(store, resolved.key), resolved.key
    except StorageError as e:
        raise FetchError(f"Failed to download {exported_key}: {e}") from e

    logger.info(
        "Using exported.sql as current state (version %s, key %s)", resolved.version, exported_key
    )
    return resolved, body, exported_key
