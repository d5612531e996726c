"""Object storage abstraction for versioned schema files.

This module provides:
- Abstract interface for key/value object storage
- LocalFSStore for development and testing
- S3Store for production (AWS, MinIO, Ceph, ...)

"Not found" is always reported as ObjectNotFoundError (or a False from
exists()); every other backend failure is a StorageError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

if TYPE_CHECKING:
    from typing import Any

    from schemasync.core.config import StoreSettings

# S3 error codes that mean the object is absent
NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


class StorageError(Exception):
    """Raised when an object store operation fails."""


class ObjectNotFoundError(StorageError):
    """Raised when an object does not exist."""


class ObjectStore(ABC):
    """Abstract interface for object storage."""

    @property
    @abstractmethod
    def location(self) -> str:
        """Return a human-readable description of where objects are stored."""

    @abstractmethod
    def list_keys(self, prefix: str) -> list[str]:
        """List every key starting with prefix.

        Args:
            prefix: Key prefix (may be empty).

        Returns:
            All matching keys, across every result page.

        Raises:
            StorageError: If listing fails.
        """

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Retrieve an object body.

        Raises:
            ObjectNotFoundError: If the object doesn't exist.
            StorageError: On any other failure.
        """

    @abstractmethod
    def put(self, key: str, data: bytes) -> None:
        """Store an object, overwriting any existing one.

        Raises:
            StorageError: If the write fails.
        """

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check whether an object exists.

        Returns:
            True if the object exists, False if it is absent.

        Raises:
            StorageError: If existence cannot be determined.
        """


class LocalFSStore(ObjectStore):
    """Local filesystem store for development and testing.

    Keys map to paths below the base directory, so "schemas/v1/schema.sql"
    is stored at "<base>/schemas/v1/schema.sql".
    """

    def __init__(self, base_path: Path | str) -> None:
        """Initialize local storage.

        Args:
            base_path: Base directory for objects.
        """
        self._base_path = Path(base_path).resolve()
        self._base_path.mkdir(parents=True, exist_ok=True)

    @property
    def location(self) -> str:
        """Return the local storage path."""
        return f"Local filesystem: {self._base_path}"

    def _path(self, key: str) -> Path:
        path = (self._base_path / key).resolve()
        if not path.is_relative_to(self._base_path):
            raise StorageError(f"Key escapes store root: {key}")
        return path

    def list_keys(self, prefix: str) -> list[str]:
        """List keys by walking the base directory."""
        try:
            keys = [
                path.relative_to(self._base_path).as_posix()
                for path in self._base_path.rglob("*")
                if path.is_file()
            ]
        except OSError as e:
            raise StorageError(f"Failed to list {self._base_path}: {e}") from e
        return sorted(key for key in keys if key.startswith(prefix))

    def get(self, key: str) -> bytes:
        """Read an object from disk."""
        path = self._path(key)
        if not path.is_file():
            raise ObjectNotFoundError(f"Object not found: {key}")
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read {key}: {e}") from e

    def put(self, key: str, data: bytes) -> None:
        """Write an object to disk."""
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Failed to write {key}: {e}") from e

    def exists(self, key: str) -> bool:
        """Check if an object exists on disk."""
        return self._path(key).is_file()


class S3Store(ObjectStore):
    """S3-compatible storage (AWS, MinIO, Ceph, etc.)."""

    def __init__(
        self,
        bucket: str,
        endpoint_url: str | None = None,
        region: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize S3 storage.

        Credentials come from the standard boto3 chain (environment
        variables, shared config, instance/task roles).

        Args:
            bucket: S3 bucket name.
            endpoint_url: Custom endpoint URL (for MinIO etc.).
            region: AWS region (default: boto3 chain).
            timeout: Connect and read timeout in seconds.
        """
        import boto3

        self._bucket = bucket
        self._endpoint_url = endpoint_url
        self._client: Any = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            region_name=region,
            config=BotoConfig(
                connect_timeout=timeout,
                read_timeout=timeout,
                retries={"max_attempts": 3, "mode": "standard"},
            ),
        )

    @property
    def location(self) -> str:
        """Return the S3 bucket location."""
        if self._endpoint_url:
            return f"S3: {self._endpoint_url}/{self._bucket}"
        return f"S3: s3://{self._bucket}"

    @staticmethod
    def _is_not_found(err: ClientError) -> bool:
        code = err.response.get("Error", {}).get("Code", "")
        return code in NOT_FOUND_CODES

    def list_keys(self, prefix: str) -> list[str]:
        """List keys under prefix, following pagination."""
        keys: list[str] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
                keys.extend(obj["Key"] for obj in page.get("Contents", []))
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to list s3://{self._bucket}/{prefix}: {e}") from e
        return keys

    def get(self, key: str) -> bytes:
        """Download an object."""
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
            body: bytes = response["Body"].read()
            return body
        except ClientError as e:
            if self._is_not_found(e):
                raise ObjectNotFoundError(f"Object not found: {key}") from e
            raise StorageError(f"Failed to get s3://{self._bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to get s3://{self._bucket}/{key}: {e}") from e

    def put(self, key: str, data: bytes) -> None:
        """Upload an object."""
        try:
            self._client.put_object(Bucket=self._bucket, Key=key, Body=data)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to put s3://{self._bucket}/{key}: {e}") from e

    def exists(self, key: str) -> bool:
        """Check if an object exists with a HEAD request."""
        try:
            self._client.head_object(Bucket=self._bucket, Key=key)
            return True
        except ClientError as e:
            if self._is_not_found(e):
                return False
            raise StorageError(f"Failed to head s3://{self._bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to head s3://{self._bucket}/{key}: {e}") from e


def create_store(settings: StoreSettings) -> ObjectStore:
    """Factory function to create an object store from settings.

    Args:
        settings: Store settings. A local_path selects LocalFSStore,
            otherwise an S3Store on settings.bucket is created.

    Returns:
        Configured ObjectStore instance.

    Raises:
        ValueError: If neither a bucket nor a local path is configured.
    """
    if settings.local_path:
        return LocalFSStore(settings.local_path)

    if not settings.bucket:
        raise ValueError("S3 storage requires a bucket")
    return S3Store(
        bucket=settings.bucket,
        endpoint_url=settings.endpoint_url,
        region=settings.region,
        timeout=settings.timeout,
    )
